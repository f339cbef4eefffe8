# blueprints/clashes/uow.py
from __future__ import annotations
import threading
from contextlib import contextmanager, nullcontext
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from blueprints.activity.services import ActivitySink
from .errors import ConcurrentUpdate, StorageError

# Детект + сверка конфликтов сериализуются внутри процесса: выдача Clash-id
# читает максимум и инкрементирует его. Между процессами страхует UNIQUE(clash_id).
RECONCILE_LOCK = threading.RLock()


@contextmanager
def unit_of_work(session: Session, sink: Optional[ActivitySink] = None,
                 lock=None) -> Iterator[Session]:
    """Всё или ничего: commit в конце, rollback при любой ошибке."""
    with (lock if lock is not None else nullcontext()):
        try:
            yield session
            session.commit()
        except StaleDataError as e:
            session.rollback()
            if sink:
                sink.discard()
            raise ConcurrentUpdate("Record was modified concurrently, retry the request") from e
        except SQLAlchemyError as e:
            session.rollback()
            if sink:
                sink.discard()
            raise StorageError("Storage failure, transaction rolled back") from e
        except BaseException:
            session.rollback()
            if sink:
                sink.discard()
            raise
    if sink:
        sink.publish(session)
