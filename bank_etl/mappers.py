import re

from bank_etl.schemas import AnnualAccountInput, InterestInput, ReadItem, TransactionInput


_INTEGER = re.compile(r"[+-]?[0-9]+")
INT_RANGE = (-(2**31), 2**31 - 1)
LONG_RANGE = (-(2**63), 2**63 - 1)


def _parse_bounded(value: str | None, bounds: tuple[int, int]) -> int | None:
    if value is None:
        return None
    candidate = value.strip()
    if not _INTEGER.fullmatch(candidate):
        return None
    parsed = int(candidate)
    if not bounds[0] <= parsed <= bounds[1]:
        return None
    return parsed


def parse_int(value: str | None) -> int | None:
    return _parse_bounded(value, INT_RANGE)


def parse_long(value: str | None) -> int | None:
    return _parse_bounded(value, LONG_RANGE)


def _or_default(parsed: int | None, default: int = 0) -> int:
    return default if parsed is None else parsed


# Amounts and balances map to None when unparsable; ids and age map to 0.
def map_transaction(item: ReadItem) -> TransactionInput:
    fields = item.fields
    return TransactionInput(
        id=_or_default(parse_long(fields.get("id"))),
        fecha=fields.get("fecha", ""),
        monto=parse_int(fields.get("monto")),
        tipo=fields.get("tipo", ""),
    )


def map_interest(item: ReadItem) -> InterestInput:
    fields = item.fields
    return InterestInput(
        cuenta_id=_or_default(parse_int(fields.get("cuenta_id"))),
        nombre=fields.get("nombre", ""),
        saldo=parse_int(fields.get("saldo")),
        edad=_or_default(parse_int(fields.get("edad"))),
        tipo=fields.get("tipo", ""),
    )


def map_annual_account(item: ReadItem) -> AnnualAccountInput:
    fields = item.fields
    return AnnualAccountInput(
        cuenta_id=_or_default(parse_int(fields.get("cuenta_id"))),
        fecha=fields.get("fecha", ""),
        transaccion=fields.get("transaccion", ""),
        monto=parse_int(fields.get("monto")),
        descripcion=fields.get("descripcion", ""),
    )
