from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class ReadItem:
    line_number: int
    fields: dict[str, str]


@dataclass(frozen=True)
class TransactionInput:
    id: int
    fecha: str
    monto: int | None
    tipo: str


@dataclass(frozen=True)
class InterestInput:
    cuenta_id: int
    nombre: str
    saldo: int | None
    edad: int
    tipo: str


@dataclass(frozen=True)
class AnnualAccountInput:
    cuenta_id: int
    fecha: str
    transaccion: str
    monto: int | None
    descripcion: str


@dataclass(frozen=True)
class ValidatedTransaction:
    id: int
    transaction_date: date
    amount: int
    type: str


@dataclass(frozen=True)
class ValidatedInterest:
    account_id: int
    name: str
    balance: int
    age: int
    type: str


@dataclass(frozen=True)
class ValidatedAnnualAccount:
    account_id: int
    transaction_date: date
    transaction: str
    amount: int
    description: str


@dataclass(frozen=True)
class SkipRecord:
    pipeline: str
    line_number: int
    fields: dict[str, str]
    reason: str
    kind: str


@dataclass(frozen=True)
class RunResult:
    run_id: int
    pipeline: str
    trigger_source: str
    status: str
    read_count: int
    write_count: int
    skip_count: int
    error_file: str | None
    error: str | None


@dataclass(frozen=True)
class TriggerResult:
    ok: bool
    message: str
