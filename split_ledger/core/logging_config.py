import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from split_ledger.core.config import settings
from split_ledger.core.exceptions import LedgerError

logger = logging.getLogger("split_ledger.operations")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the service process"""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel((level or settings.LOG_LEVEL).upper())


@contextmanager
def ledger_operation(operation: str, actor_id: Optional[str], **context: Any) -> Iterator[Dict[str, Any]]:
    """
    Emit one structured log record describing a ledger operation.

    The yielded dict can be filled in by the operation (e.g. a count of
    transitioned records) and ends up in the record's ``ledger`` extra.

    Outcome is ``ok`` on success, the error code for domain errors, and
    ``internal_error`` for anything unexpected. Exceptions are re-raised.
    """
    event: Dict[str, Any] = {"operation": operation, "actor_id": actor_id, **context}
    try:
        yield event
    except LedgerError as e:
        event["outcome"] = e.code
        logger.warning(f"ledger.{operation} actor={actor_id} outcome={e.code}: {e.message}",
                       extra={"ledger": event})
        raise
    except Exception:
        event["outcome"] = "internal_error"
        logger.exception(f"ledger.{operation} actor={actor_id} outcome=internal_error",
                         extra={"ledger": event})
        raise
    else:
        event["outcome"] = "ok"
        logger.info(f"ledger.{operation} actor={actor_id} outcome=ok", extra={"ledger": event})
