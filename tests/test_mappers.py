from bank_etl.mappers import map_annual_account, map_interest, map_transaction, parse_int, parse_long
from bank_etl.schemas import ReadItem


def test_parse_int_handles_padding_and_garbage() -> None:
    assert parse_int(" 42 ") == 42
    assert parse_int("-7") == -7
    assert parse_int("") is None
    assert parse_int("12.5") is None
    assert parse_int("1_000") is None
    assert parse_int(None) is None


def test_parse_int_rejects_values_outside_32_bits() -> None:
    assert parse_int("2147483647") == 2147483647
    assert parse_int("-2147483648") == -2147483648
    assert parse_int("2147483648") is None
    assert parse_int("-2147483649") is None
    assert parse_long("2147483648") == 2147483648
    assert parse_long("9223372036854775808") is None


def test_out_of_range_numbers_map_to_missing_or_default() -> None:
    item = ReadItem(
        line_number=5,
        fields={"cuenta_id": "99999999999", "nombre": "Ana", "saldo": "99999999999", "edad": "30", "tipo": "A"},
    )

    mapped = map_interest(item)

    assert mapped.cuenta_id == 0
    assert mapped.saldo is None


def test_transaction_mapper_keeps_text_and_nulls_bad_amount() -> None:
    item = ReadItem(line_number=2, fields={"id": "abc", "fecha": "", "monto": "n/a", "tipo": " credit "})

    mapped = map_transaction(item)

    assert mapped.id == 0
    assert mapped.fecha == ""
    assert mapped.monto is None
    assert mapped.tipo == " credit "


def test_interest_mapper_distinguishes_missing_balance_from_defaults() -> None:
    item = ReadItem(
        line_number=3,
        fields={"cuenta_id": "", "nombre": "Ana", "saldo": "", "edad": "x", "tipo": "A"},
    )

    mapped = map_interest(item)

    assert mapped.cuenta_id == 0
    assert mapped.saldo is None
    assert mapped.edad == 0
    assert mapped.nombre == "Ana"


def test_annual_account_mapper_parses_numbers() -> None:
    item = ReadItem(
        line_number=4,
        fields={
            "cuenta_id": "11",
            "fecha": "2024-05-01",
            "transaccion": "deposit",
            "monto": "250",
            "descripcion": "salary",
        },
    )

    mapped = map_annual_account(item)

    assert mapped.cuenta_id == 11
    assert mapped.monto == 250
    assert mapped.transaccion == "deposit"
    assert mapped.descripcion == "salary"
