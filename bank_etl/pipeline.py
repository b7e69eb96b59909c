from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from itertools import zip_longest
import logging
from pathlib import Path
import threading

from sqlalchemy.orm import Session, sessionmaker

from bank_etl.config import Settings
from bank_etl.db_models import PipelineRun
from bank_etl.errors import MalformedLineError, SkipBudgetExceeded, ValidationError, WriteError
from bank_etl.pipelines import PipelineDefinition, get_pipeline
from bank_etl.reader import Checkpoint, DelimitedFileReader
from bank_etl.run_store import create_run, get_latest_run, mark_run_completed, mark_run_failed, save_checkpoint
from bank_etl.schemas import ReadItem, RunResult, SkipRecord, TriggerResult
from bank_etl.sink import RepositorySink
from bank_etl.skip_buffer import SkipBuffer, delete_error_file, write_error_file


logger = logging.getLogger(__name__)

ChunkItem = ReadItem | MalformedLineError


@dataclass(frozen=True)
class Chunk:
    index: int
    items: list[ChunkItem]
    checkpoint: Checkpoint


class RunProgress:
    def __init__(self) -> None:
        self.read_count = 0
        self.write_count = 0
        self._lock = threading.Lock()

    def add_written(self, count: int) -> None:
        with self._lock:
            self.write_count += count


class CheckpointTracker:
    # Saved position only advances across chunks finished in index order.
    def __init__(self, save: Callable[[int], None]) -> None:
        self._save = save
        self._lock = threading.Lock()
        self._pending: dict[int, Checkpoint] = {}
        self._finished: set[int] = set()
        self._next_index = 0

    def register(self, chunk: Chunk) -> None:
        with self._lock:
            self._pending[chunk.index] = chunk.checkpoint

    def finish(self, index: int) -> None:
        with self._lock:
            self._finished.add(index)
            advanced: Checkpoint | None = None
            while self._next_index in self._finished:
                self._finished.discard(self._next_index)
                advanced = self._pending.pop(self._next_index)
                self._next_index += 1
            if advanced is not None:
                self._save(advanced.lines_consumed)


class PipelineRunner:
    def __init__(self, settings: Settings, session_factory: sessionmaker[Session]) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self._skip_buffers: dict[str, SkipBuffer] = {}
        self._states: dict[str, str] = {}
        self._lock = threading.Lock()

    def skip_buffer(self, name: str) -> SkipBuffer:
        with self._lock:
            if name not in self._skip_buffers:
                self._skip_buffers[name] = SkipBuffer(name)
            return self._skip_buffers[name]

    def state(self, name: str) -> str:
        with self._lock:
            return self._states.get(name, "idle")

    def error_file_path(self, definition: PipelineDefinition) -> Path:
        return Path(self.settings.error_dir) / definition.error_file

    def input_file_path(self, definition: PipelineDefinition) -> Path:
        return Path(self.settings.input_dir) / definition.input_file

    def before_run(self, definition: PipelineDefinition) -> None:
        self.skip_buffer(definition.name).clear()
        logger.info("skip buffer cleared", extra={"pipeline": definition.name})
        delete_error_file(self.error_file_path(definition))

    def after_run(self, definition: PipelineDefinition, status: str, failure: Exception | None = None) -> str | None:
        # Failed runs are flushed only when the skip budget stopped them.
        skip_buffer = self.skip_buffer(definition.name)
        if status != "completed" and not isinstance(failure, SkipBudgetExceeded):
            logger.info(
                "error file not written for failed run",
                extra={"pipeline": definition.name, "skipped": len(skip_buffer)},
            )
            return None

        records = skip_buffer.snapshot()
        if not records:
            logger.info("no skipped records to write", extra={"pipeline": definition.name})
            return None

        path = self.error_file_path(definition)
        try:
            written = write_error_file(path, definition.columns, records)
        except OSError:
            logger.exception("could not write error file", extra={"pipeline": definition.name, "path": str(path)})
            return None

        logger.info("error file written", extra={"pipeline": definition.name, "path": str(path), "records": written})
        return str(path)

    def run(self, name: str, *, trigger_source: str = "manual", resume: bool = False) -> RunResult:
        definition = get_pipeline(name)
        with self._lock:
            if self._states.get(name) == "running":
                raise RuntimeError(f"pipeline '{name}' is already running")
            self._states[name] = "running"

        try:
            return self._run(definition, trigger_source=trigger_source, resume=resume)
        except BaseException:
            with self._lock:
                self._states[name] = "failed"
            raise

    def _run(self, definition: PipelineDefinition, *, trigger_source: str, resume: bool) -> RunResult:
        self.before_run(definition)

        with self.session_factory() as db:
            checkpoint = self._resume_checkpoint(db, definition) if resume else None
            run = create_run(
                db,
                pipeline=definition.name,
                trigger_source=trigger_source,
                checkpoint_line=checkpoint.lines_consumed if checkpoint else 0,
            )
        logger.info(
            "pipeline run started",
            extra={"pipeline": definition.name, "run_id": run.id, "trigger_source": trigger_source},
        )

        progress = RunProgress()
        status = "completed"
        failure: Exception | None = None
        try:
            self._execute(definition, run.id, progress, checkpoint)
        except SkipBudgetExceeded as exc:
            status, failure = "failed", exc
            logger.error("pipeline run aborted", extra={"pipeline": definition.name, "run_id": run.id, "error": str(exc)})
        except Exception as exc:
            status, failure = "failed", exc
            logger.exception("pipeline run failed", extra={"pipeline": definition.name, "run_id": run.id})

        error_file = self.after_run(definition, status, failure)
        skip_count = len(self.skip_buffer(definition.name))

        with self.session_factory() as db:
            run = db.get(PipelineRun, run.id)
            if status == "completed":
                mark_run_completed(
                    db,
                    run,
                    read_count=progress.read_count,
                    write_count=progress.write_count,
                    skip_count=skip_count,
                    error_file=error_file,
                )
            else:
                mark_run_failed(
                    db,
                    run,
                    error=str(failure),
                    read_count=progress.read_count,
                    write_count=progress.write_count,
                    skip_count=skip_count,
                    error_file=error_file,
                )

        with self._lock:
            self._states[definition.name] = status

        logger.info(
            "pipeline run finished",
            extra={
                "pipeline": definition.name,
                "run_id": run.id,
                "status": status,
                "read": progress.read_count,
                "written": progress.write_count,
                "skipped": skip_count,
            },
        )
        return RunResult(
            run_id=run.id,
            pipeline=definition.name,
            trigger_source=trigger_source,
            status=status,
            read_count=progress.read_count,
            write_count=progress.write_count,
            skip_count=skip_count,
            error_file=error_file,
            error=None if failure is None else str(failure),
        )

    def _resume_checkpoint(self, db: Session, definition: PipelineDefinition) -> Checkpoint | None:
        previous = get_latest_run(db, definition.name)
        if previous is None or previous.status != "failed" or previous.checkpoint_line <= 0:
            return None
        logger.info(
            "resuming from failed run",
            extra={"pipeline": definition.name, "run_id": previous.id, "checkpoint_line": previous.checkpoint_line},
        )
        return Checkpoint(lines_consumed=previous.checkpoint_line)

    def _execute(
        self,
        definition: PipelineDefinition,
        run_id: int,
        progress: RunProgress,
        checkpoint: Checkpoint | None,
    ) -> None:
        skip_buffer = self.skip_buffer(definition.name)
        sink = RepositorySink(self.session_factory, definition.to_row, upsert=definition.upsert)
        reader = DelimitedFileReader(
            self.input_file_path(definition),
            definition.columns,
            strict=self.settings.strict_reader,
        )
        tracker = CheckpointTracker(lambda line: self._save_checkpoint(run_id, line))
        budget_exceeded = threading.Event()
        stop = threading.Event()
        in_flight = threading.BoundedSemaphore(self.settings.worker_count + self.settings.queue_capacity)
        futures: list[Future] = []

        def process(chunk: Chunk) -> None:
            try:
                self._process_chunk(definition, chunk, sink, skip_buffer, budget_exceeded, progress)
                if not budget_exceeded.is_set():
                    tracker.finish(chunk.index)
            except BaseException:
                stop.set()
                raise
            finally:
                in_flight.release()

        # Executor exits first, so in-flight chunks finish before the reader closes.
        with reader, ThreadPoolExecutor(
            max_workers=self.settings.worker_count,
            thread_name_prefix=f"{definition.name}-worker",
        ) as executor:
            if checkpoint is not None:
                reader.restore(checkpoint)

            index = 0
            while not (budget_exceeded.is_set() or stop.is_set()):
                items = self._read_chunk(reader)
                if not items:
                    break
                progress.read_count += len(items)

                chunk = Chunk(index=index, items=items, checkpoint=reader.save_state())
                tracker.register(chunk)
                in_flight.acquire()
                futures.append(executor.submit(process, chunk))
                index += 1

        for future in futures:
            error = future.exception()
            if error is not None:
                raise error

        if budget_exceeded.is_set():
            raise SkipBudgetExceeded(len(skip_buffer), self.settings.skip_limit)

    def _read_chunk(self, reader: DelimitedFileReader) -> list[ChunkItem]:
        items: list[ChunkItem] = []
        while len(items) < self.settings.chunk_size:
            try:
                item = reader.read()
            except MalformedLineError as exc:
                items.append(exc)
                continue
            if item is None:
                break
            items.append(item)
        return items

    def _process_chunk(
        self,
        definition: PipelineDefinition,
        chunk: Chunk,
        sink: RepositorySink,
        skip_buffer: SkipBuffer,
        budget_exceeded: threading.Event,
        progress: RunProgress,
    ) -> None:
        accepted: list[tuple[ReadItem, object]] = []
        for item in chunk.items:
            if budget_exceeded.is_set():
                return

            if isinstance(item, MalformedLineError):
                fields = dict(zip_longest(definition.columns, item.fields[: len(definition.columns)], fillvalue=""))
                self._skip(skip_buffer, budget_exceeded, definition, item.line_number, fields, item)
                continue

            # Only classified validation failures become skips; anything else fails the run.
            try:
                entity = definition.validator(definition.mapper(item))
            except ValidationError as exc:
                self._skip(skip_buffer, budget_exceeded, definition, item.line_number, item.fields, exc)
                continue
            accepted.append((item, entity))

        if budget_exceeded.is_set():
            return

        try:
            written = sink.write([entity for _, entity in accepted])
        except WriteError as exc:
            for item, _ in accepted:
                if self._skip(skip_buffer, budget_exceeded, definition, item.line_number, item.fields, exc):
                    return
            return

        progress.add_written(written)

    def _skip(
        self,
        skip_buffer: SkipBuffer,
        budget_exceeded: threading.Event,
        definition: PipelineDefinition,
        line_number: int,
        fields: dict[str, str],
        error: MalformedLineError | ValidationError | WriteError,
    ) -> bool:
        record = SkipRecord(
            pipeline=definition.name,
            line_number=line_number,
            fields=dict(fields),
            reason=error.reason,
            kind=error.kind,
        )
        count = skip_buffer.add(record)
        logger.warning(
            "record skipped",
            extra={"pipeline": definition.name, "line": line_number, "kind": error.kind, "reason": error.reason},
        )
        if count > self.settings.skip_limit:
            budget_exceeded.set()
            return True
        return False

    def _save_checkpoint(self, run_id: int, checkpoint_line: int) -> None:
        with self.session_factory() as db:
            save_checkpoint(db, run_id=run_id, checkpoint_line=checkpoint_line)


def run_pipeline(runner: PipelineRunner, name: str, *, trigger_source: str = "manual") -> TriggerResult:
    try:
        definition = get_pipeline(name)
        result = runner.run(definition.name, trigger_source=trigger_source)
    except Exception as exc:
        logger.exception("pipeline trigger failed", extra={"pipeline": name})
        return TriggerResult(ok=False, message=f"Error running batch: {exc}")

    if result.status == "failed":
        return TriggerResult(ok=False, message=f"Error running batch: {result.error}")
    return TriggerResult(ok=True, message=f"Batch {definition.input_file} executed")
