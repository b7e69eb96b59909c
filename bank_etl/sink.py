from collections.abc import Callable, Sequence
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from bank_etl.db_models import Base
from bank_etl.errors import WriteError


logger = logging.getLogger(__name__)


class RepositorySink:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        to_row: Callable[[object], Base],
        *,
        upsert: bool = False,
    ) -> None:
        self.session_factory = session_factory
        self.to_row = to_row
        self.upsert = upsert

    def write(self, entities: Sequence[object]) -> int:
        if not entities:
            return 0

        try:
            # begin() commits on clean exit, rolls back on error and always closes.
            with self.session_factory.begin() as db:
                for entity in entities:
                    row = self.to_row(entity)
                    if self.upsert:
                        db.merge(row)
                        # Pending rows are only visible to the next merge once flushed.
                        db.flush()
                    else:
                        db.add(row)
        except SQLAlchemyError as exc:
            logger.error("batch write failed", extra={"batch_size": len(entities), "error": str(exc)})
            raise WriteError(f"batch write failed: {exc}") from exc

        return len(entities)
