from collections.abc import Sequence
import csv
import logging
from pathlib import Path
import threading

from bank_etl.schemas import SkipRecord


logger = logging.getLogger(__name__)


class SkipBuffer:
    def __init__(self, pipeline: str) -> None:
        self.pipeline = pipeline
        self._records: list[SkipRecord] = []
        self._lock = threading.Lock()

    def add(self, record: SkipRecord) -> int:
        with self._lock:
            self._records.append(record)
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def snapshot(self) -> list[SkipRecord]:
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


def write_error_file(path: Path, columns: Sequence[str], records: Sequence[SkipRecord]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as outfile:
        outfile.write(",".join(columns))
        outfile.write("\n")
        writer = csv.writer(outfile, lineterminator="\n")
        for record in records:
            writer.writerow([record.fields.get(column, "") for column in columns])
    return len(records)


def delete_error_file(path: Path) -> bool:
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError:
        logger.warning("could not delete previous error file", exc_info=True, extra={"path": str(path)})
        return False

    logger.info("previous error file deleted", extra={"path": str(path)})
    return True
