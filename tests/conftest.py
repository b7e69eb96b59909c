from collections.abc import Callable, Generator, Sequence
from pathlib import Path

import pytest
from sqlalchemy.orm import Session, sessionmaker

from bank_etl.config import Settings
from bank_etl.database import build_session_factory
from bank_etl.pipeline import PipelineRunner


@pytest.fixture()
def temp_workspace(tmp_path: Path) -> Path:
    (tmp_path / "data").mkdir(parents=True, exist_ok=True)
    (tmp_path / "errors").mkdir(parents=True, exist_ok=True)
    return tmp_path


@pytest.fixture()
def test_settings(temp_workspace: Path) -> Settings:
    return Settings(
        app_name="bank-etl",
        database_url=f"sqlite:///{temp_workspace / 'test.db'}",
        log_level="INFO",
        input_dir=str(temp_workspace / "data"),
        error_dir=str(temp_workspace / "errors"),
        chunk_size=10,
        skip_limit=1000,
        worker_count=4,
        queue_capacity=8,
        strict_reader=False,
        schedule_hour_utc=2,
        schedule_minute_utc=0,
    )


@pytest.fixture()
def session_factory(test_settings: Settings) -> sessionmaker[Session]:
    return build_session_factory(test_settings.database_url)


@pytest.fixture()
def runner(test_settings: Settings, session_factory: sessionmaker[Session]) -> Generator[PipelineRunner, None, None]:
    yield PipelineRunner(test_settings, session_factory)


@pytest.fixture()
def write_input(temp_workspace: Path) -> Callable[[str, str, Sequence[str]], Path]:
    def _write(file_name: str, header: str, lines: Sequence[str]) -> Path:
        path = temp_workspace / "data" / file_name
        with path.open("w", encoding="utf-8") as outfile:
            outfile.write(header)
            outfile.write("\n")
            for line in lines:
                outfile.write(line)
                outfile.write("\n")
        return path

    return _write
