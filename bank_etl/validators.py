import calendar
from collections.abc import Callable
from datetime import date
import logging
import re

from bank_etl.errors import ValidationError
from bank_etl.schemas import (
    AnnualAccountInput,
    InterestInput,
    TransactionInput,
    ValidatedAnnualAccount,
    ValidatedInterest,
    ValidatedTransaction,
)


logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
UNKNOWN_TYPE = "-1"


def _date_parser(pattern: str, year: int, month: int, day: int) -> Callable[[str], date]:
    regex = re.compile(pattern)

    def parse(value: str) -> date:
        match = regex.fullmatch(value)
        if match is None:
            raise ValueError(f"{value!r} does not match {pattern}")
        parts = match.groups()
        year_value, month_value, day_value = int(parts[year]), int(parts[month]), int(parts[day])
        # Days 29-31 past the end of the month resolve to its last day.
        if 1 <= month_value <= 12 and 29 <= day_value <= 31:
            day_value = min(day_value, calendar.monthrange(year_value, month_value)[1])
        return date(year_value, month_value, day_value)

    return parse


# Order matters: ambiguous values such as 01/02/2024 resolve as DD/MM/YYYY.
DATE_PARSERS: tuple[tuple[str, Callable[[str], date]], ...] = (
    ("YYYY-MM-DD", _date_parser(r"([0-9]{4})-([0-9]{2})-([0-9]{2})", 0, 1, 2)),
    ("DD/MM/YYYY", _date_parser(r"([0-9]{2})/([0-9]{2})/([0-9]{4})", 2, 1, 0)),
    ("MM/DD/YYYY", _date_parser(r"([0-9]{2})/([0-9]{2})/([0-9]{4})", 2, 0, 1)),
    ("DD-MM-YYYY", _date_parser(r"([0-9]{2})-([0-9]{2})-([0-9]{4})", 2, 1, 0)),
    ("YYYY/MM/DD", _date_parser(r"([0-9]{4})/([0-9]{2})/([0-9]{2})", 0, 1, 2)),
)


def parse_date(value: str | None) -> date | None:
    if value is None or not value.strip():
        return None

    candidate = value.strip()
    for label, parser in DATE_PARSERS:
        try:
            parsed = parser(candidate)
        except ValueError:
            logger.debug("date did not parse", extra={"value": value, "format": label})
            continue
        logger.debug("date parsed", extra={"value": value, "format": label, "parsed": parsed.isoformat()})
        return parsed

    return None


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _require_date(raw: str | None) -> date:
    if _is_blank(raw):
        raise ValidationError("date missing")
    parsed = parse_date(raw)
    if parsed is None:
        raise ValidationError(f"invalid date: {raw}")
    return parsed


def validate_transaction(item: TransactionInput) -> ValidatedTransaction:
    if item.monto is None:
        raise ValidationError("amount missing")
    if item.monto == 0:
        raise ValidationError("amount zero")

    transaction_date = _require_date(item.fecha)
    if item.id <= 0:
        raise ValidationError("invalid id")

    return ValidatedTransaction(
        id=item.id,
        transaction_date=transaction_date,
        amount=item.monto,
        type=item.tipo,
    )


def validate_interest(item: InterestInput) -> ValidatedInterest:
    if _is_blank(item.nombre) or item.nombre.lower() == UNKNOWN_NAME.lower():
        raise ValidationError("name missing")
    if item.saldo is None:
        raise ValidationError("balance missing")
    if _is_blank(item.tipo) or item.tipo == UNKNOWN_TYPE:
        raise ValidationError("type missing")
    if item.cuenta_id <= 0:
        raise ValidationError("invalid account id")
    if item.edad <= 0:
        raise ValidationError("invalid age")

    return ValidatedInterest(
        account_id=item.cuenta_id,
        name=item.nombre,
        balance=item.saldo,
        age=item.edad,
        type=item.tipo,
    )


def validate_annual_account(item: AnnualAccountInput) -> ValidatedAnnualAccount:
    if item.monto is None:
        raise ValidationError("amount missing")

    transaction_date = _require_date(item.fecha)

    return ValidatedAnnualAccount(
        account_id=item.cuenta_id,
        transaction_date=transaction_date,
        transaction=item.transaccion,
        amount=item.monto,
        description=item.descripcion,
    )
