import argparse
import logging

from bank_etl.config import get_settings
from bank_etl.database import build_session_factory
from bank_etl.pipeline import PipelineRunner, run_pipeline
from bank_etl.pipelines import PIPELINES
from bank_etl.scheduler import start_scheduler


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the bank batch pipelines")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="run one pipeline")
    run_parser.add_argument("pipeline", choices=sorted(PIPELINES), help="Pipeline to run")
    run_parser.add_argument(
        "--resume",
        action="store_true",
        help="continue after the last committed chunk of the previous failed run",
    )
    run_parser.add_argument(
        "--trigger-source",
        default="manual",
        choices=["manual", "scheduled"],
        help="Metadata label for how this run was triggered",
    )

    subparsers.add_parser("run-all", help="run every pipeline once")

    schedule_parser = subparsers.add_parser("schedule", help="start daily scheduler")
    schedule_parser.add_argument("--run-now", action="store_true", help="also run once immediately")

    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(threadName)s %(message)s",
    )

    session_factory = build_session_factory(settings.database_url)
    if args.command == "schedule":
        start_scheduler(settings, session_factory, run_now=args.run_now)
        return

    runner = PipelineRunner(settings, session_factory)
    if args.command == "run-all":
        outcomes = [run_pipeline(runner, name) for name in PIPELINES]
        for outcome in outcomes:
            print(outcome.message)
        if not all(outcome.ok for outcome in outcomes):
            raise SystemExit(1)
        return

    result = runner.run(args.pipeline, trigger_source=args.trigger_source, resume=args.resume)

    print(
        "run_id={run_id} pipeline={pipeline} trigger={trigger} status={status} read={read} written={written} skipped={skipped} error_file={error_file}".format(
            run_id=result.run_id,
            pipeline=result.pipeline,
            trigger=result.trigger_source,
            status=result.status,
            read=result.read_count,
            written=result.write_count,
            skipped=result.skip_count,
            error_file=result.error_file,
        )
    )
    if result.status == "failed":
        print(f"error={result.error}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
