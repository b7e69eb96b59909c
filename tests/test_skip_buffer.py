import csv
from pathlib import Path
import threading

from bank_etl.schemas import SkipRecord
from bank_etl.skip_buffer import SkipBuffer, delete_error_file, write_error_file


COLUMNS = ("cuenta_id", "nombre", "saldo", "edad", "tipo")


def make_record(index: int, **fields: str) -> SkipRecord:
    raw = {"cuenta_id": str(index), "nombre": "Unknown", "saldo": "100", "edad": "30", "tipo": "A"}
    raw.update(fields)
    return SkipRecord(pipeline="interests", line_number=index + 1, fields=raw, reason="name missing", kind="validation")


def test_concurrent_adds_are_not_lost() -> None:
    buffer = SkipBuffer("interests")

    def worker(offset: int) -> None:
        for i in range(200):
            buffer.add(make_record(offset + i))

    threads = [threading.Thread(target=worker, args=(n * 1000,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(buffer) == 1600
    buffer.clear()
    assert len(buffer) == 0


def test_add_returns_running_count() -> None:
    buffer = SkipBuffer("interests")
    assert buffer.add(make_record(1)) == 1
    assert buffer.add(make_record(2)) == 2


def test_error_file_round_trips_raw_values(tmp_path: Path) -> None:
    records = [
        make_record(1),
        make_record(2, nombre="Pérez, Juan", saldo="", tipo='say "hi"'),
        make_record(3, edad=" 7 "),
    ]
    path = tmp_path / "errores-intereses.csv"

    assert write_error_file(path, COLUMNS, records) == 3

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "cuenta_id,nombre,saldo,edad,tipo"
    with path.open(encoding="utf-8", newline="") as infile:
        reread = list(csv.DictReader(infile))
    assert reread == [record.fields for record in records]


def test_error_file_is_overwritten(tmp_path: Path) -> None:
    path = tmp_path / "errores-intereses.csv"
    write_error_file(path, COLUMNS, [make_record(1), make_record(2)])
    write_error_file(path, COLUMNS, [make_record(3)])

    assert len(path.read_text(encoding="utf-8").splitlines()) == 2


def test_delete_error_file_is_best_effort(tmp_path: Path) -> None:
    path = tmp_path / "errores-intereses.csv"
    assert delete_error_file(path) is False

    path.write_text("x\n", encoding="utf-8")
    assert delete_error_file(path) is True
    assert not path.exists()
