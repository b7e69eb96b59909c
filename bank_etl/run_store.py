from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from bank_etl.db_models import PipelineRun


def utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def create_run(db: Session, *, pipeline: str, trigger_source: str, checkpoint_line: int = 0) -> PipelineRun:
    run = PipelineRun(
        pipeline=pipeline,
        trigger_source=trigger_source,
        status="running",
        started_at=utc_now(),
        checkpoint_line=checkpoint_line,
    )
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def get_latest_run(db: Session, pipeline: str) -> PipelineRun | None:
    stmt = select(PipelineRun).where(PipelineRun.pipeline == pipeline).order_by(PipelineRun.id.desc()).limit(1)
    return db.execute(stmt).scalar_one_or_none()


def save_checkpoint(db: Session, *, run_id: int, checkpoint_line: int) -> None:
    db.execute(update(PipelineRun).where(PipelineRun.id == run_id).values(checkpoint_line=checkpoint_line))
    db.commit()


def mark_run_completed(
    db: Session,
    run: PipelineRun,
    *,
    read_count: int,
    write_count: int,
    skip_count: int,
    error_file: str | None,
) -> None:
    run.status = "completed"
    run.read_count = read_count
    run.write_count = write_count
    run.skip_count = skip_count
    run.error_file = error_file
    run.completed_at = utc_now()
    run.error = None
    db.commit()


def mark_run_failed(
    db: Session,
    run: PipelineRun,
    *,
    error: str,
    read_count: int = 0,
    write_count: int = 0,
    skip_count: int = 0,
    error_file: str | None = None,
) -> None:
    run.status = "failed"
    run.error = error
    run.read_count = read_count
    run.write_count = write_count
    run.skip_count = skip_count
    run.error_file = error_file
    run.completed_at = utc_now()
    db.commit()
