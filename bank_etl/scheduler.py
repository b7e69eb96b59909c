import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from sqlalchemy.orm import Session, sessionmaker

from bank_etl.config import Settings
from bank_etl.pipeline import PipelineRunner, run_pipeline
from bank_etl.pipelines import PIPELINES


logger = logging.getLogger(__name__)


def _run_daily_pipelines(runner: PipelineRunner) -> None:
    for name in PIPELINES:
        outcome = run_pipeline(runner, name, trigger_source="scheduled")
        if not outcome.ok:
            logger.error("scheduled pipeline run failed", extra={"pipeline": name, "result": outcome.message})
            continue
        logger.info("scheduled pipeline run completed", extra={"pipeline": name, "result": outcome.message})


def start_scheduler(settings: Settings, session_factory: sessionmaker[Session], *, run_now: bool = False) -> None:
    runner = PipelineRunner(settings, session_factory)
    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        _run_daily_pipelines,
        "cron",
        args=[runner],
        hour=settings.schedule_hour_utc,
        minute=settings.schedule_minute_utc,
        id="daily_pipelines",
        replace_existing=True,
        max_instances=1,
    )

    logger.info(
        "scheduler started",
        extra={
            "schedule_hour_utc": settings.schedule_hour_utc,
            "schedule_minute_utc": settings.schedule_minute_utc,
        },
    )

    if run_now:
        _run_daily_pipelines(runner)

    scheduler.start()
