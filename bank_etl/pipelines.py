from collections.abc import Callable
from dataclasses import dataclass

from bank_etl.db_models import AnnualAccount, Base, Interest, Transaction
from bank_etl.mappers import map_annual_account, map_interest, map_transaction
from bank_etl.schemas import ReadItem, ValidatedAnnualAccount, ValidatedInterest, ValidatedTransaction
from bank_etl.validators import validate_annual_account, validate_interest, validate_transaction


@dataclass(frozen=True)
class PipelineDefinition:
    name: str
    input_file: str
    error_file: str
    columns: tuple[str, ...]
    mapper: Callable[[ReadItem], object]
    validator: Callable[[object], object]
    to_row: Callable[[object], Base]
    # Transactions carry their own id and are written insert-or-update.
    upsert: bool = False


def transaction_row(entity: ValidatedTransaction) -> Transaction:
    return Transaction(
        id=entity.id,
        transaction_date=entity.transaction_date,
        amount=entity.amount,
        type=entity.type,
    )


def interest_row(entity: ValidatedInterest) -> Interest:
    return Interest(
        account_id=entity.account_id,
        name=entity.name,
        balance=entity.balance,
        age=entity.age,
        type=entity.type,
    )


def annual_account_row(entity: ValidatedAnnualAccount) -> AnnualAccount:
    return AnnualAccount(
        account_id=entity.account_id,
        transaction_date=entity.transaction_date,
        transaction=entity.transaction,
        amount=entity.amount,
        description=entity.description,
    )


TRANSACTIONS = PipelineDefinition(
    name="transactions",
    input_file="transacciones.csv",
    error_file="errores-transacciones.csv",
    columns=("id", "fecha", "monto", "tipo"),
    mapper=map_transaction,
    validator=validate_transaction,
    to_row=transaction_row,
    upsert=True,
)

INTERESTS = PipelineDefinition(
    name="interests",
    input_file="intereses.csv",
    error_file="errores-intereses.csv",
    columns=("cuenta_id", "nombre", "saldo", "edad", "tipo"),
    mapper=map_interest,
    validator=validate_interest,
    to_row=interest_row,
)

ANNUAL_ACCOUNTS = PipelineDefinition(
    name="annual-accounts",
    input_file="cuentas-anuales.csv",
    error_file="errores-cuentas-anuales.csv",
    columns=("cuenta_id", "fecha", "transaccion", "monto", "descripcion"),
    mapper=map_annual_account,
    validator=validate_annual_account,
    to_row=annual_account_row,
)

PIPELINES: dict[str, PipelineDefinition] = {
    definition.name: definition for definition in (TRANSACTIONS, INTERESTS, ANNUAL_ACCOUNTS)
}


def get_pipeline(name: str) -> PipelineDefinition:
    try:
        return PIPELINES[name]
    except KeyError:
        raise ValueError(f"unknown pipeline '{name}', expected one of: {', '.join(PIPELINES)}") from None
