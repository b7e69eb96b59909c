from collections.abc import Sequence
import csv
from dataclasses import dataclass
import logging
from pathlib import Path

from bank_etl.errors import MalformedLineError, SourceFormatError
from bank_etl.schemas import ReadItem


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    lines_consumed: int


class DelimitedFileReader:
    def __init__(
        self,
        path: Path,
        columns: Sequence[str],
        *,
        delimiter: str = ",",
        lines_to_skip: int = 1,
        strict: bool = False,
        encoding: str = "utf-8-sig",
    ) -> None:
        self.path = path
        self.columns = tuple(columns)
        self.delimiter = delimiter
        self.lines_to_skip = lines_to_skip
        self.strict = strict
        self.encoding = encoding
        self._fh = None
        self._rows = None
        self._lines_consumed = 0

    def __enter__(self) -> "DelimitedFileReader":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self) -> None:
        if not self.path.exists():
            raise FileNotFoundError(f"input file not found: {self.path}")

        self._fh = self.path.open("r", encoding=self.encoding, newline="")
        self._rows = csv.reader(self._fh, delimiter=self.delimiter)
        self._lines_consumed = 0
        for _ in range(self.lines_to_skip):
            if next(self._rows, None) is None:
                break
            self._lines_consumed = self._rows.line_num

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
        self._fh = None
        self._rows = None

    def read(self) -> ReadItem | None:
        # Wrong field counts raise MalformedLineError after the cursor has moved past the line.
        if self._rows is None:
            raise RuntimeError(f"reader for {self.path} is not open")

        while True:
            try:
                row = next(self._rows, None)
            except csv.Error as exc:
                self._lines_consumed = self._rows.line_num
                raise self._reject(f"unparsable line: {exc}", []) from exc
            if row is None:
                return None

            self._lines_consumed = self._rows.line_num
            if not row:
                continue

            if len(row) != len(self.columns):
                raise self._reject(f"expected {len(self.columns)} fields, found {len(row)}", row)

            return ReadItem(line_number=self._lines_consumed, fields=dict(zip(self.columns, row)))

    def save_state(self) -> Checkpoint:
        return Checkpoint(lines_consumed=self._lines_consumed)

    def restore(self, checkpoint: Checkpoint) -> None:
        if self._rows is None:
            raise RuntimeError(f"reader for {self.path} is not open")
        if checkpoint.lines_consumed < self._lines_consumed:
            raise ValueError(
                f"cannot restore to line {checkpoint.lines_consumed}, already at line {self._lines_consumed}"
            )

        while self._lines_consumed < checkpoint.lines_consumed:
            try:
                row = next(self._rows, None)
            except csv.Error:
                row = []
            if row is None:
                break
            self._lines_consumed = self._rows.line_num

        logger.info(
            "reader restored from checkpoint",
            extra={"path": str(self.path), "lines_consumed": self._lines_consumed},
        )

    def _reject(self, reason: str, row: list[str]) -> Exception:
        if self.strict:
            return SourceFormatError(f"{self.path} line {self._lines_consumed}: {reason}")
        return MalformedLineError(reason, line_number=self._lines_consumed, fields=row)
