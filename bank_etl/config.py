from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    input_dir: str
    error_dir: str
    chunk_size: int
    skip_limit: int
    worker_count: int
    queue_capacity: int
    strict_reader: bool
    schedule_hour_utc: int
    schedule_minute_utc: int


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "bank-etl"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./bank_etl.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        input_dir=os.getenv("INPUT_DIR", "./data"),
        error_dir=os.getenv("ERROR_DIR", "."),
        chunk_size=int(os.getenv("CHUNK_SIZE", "10")),
        skip_limit=int(os.getenv("SKIP_LIMIT", "1000")),
        worker_count=int(os.getenv("WORKER_COUNT", "10")),
        queue_capacity=int(os.getenv("QUEUE_CAPACITY", "30")),
        strict_reader=_env_flag("STRICT_READER", "false"),
        schedule_hour_utc=int(os.getenv("SCHEDULE_HOUR_UTC", "2")),
        schedule_minute_utc=int(os.getenv("SCHEDULE_MINUTE_UTC", "0")),
    )
