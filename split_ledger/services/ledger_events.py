import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from split_ledger.core.config import settings
from split_ledger.models.debts import Debt

logger = logging.getLogger(__name__)


def debt_payload(debt: Debt) -> Dict[str, Any]:
    """JSON-safe snapshot of a debt record for event messages"""
    return {
        "id": debt.id,
        "group_id": debt.group_id,
        "creditor_id": debt.creditor_id,
        "debtor_id": debt.debtor_id,
        "amount": str(debt.amount),
        "currency": debt.currency,
        "status": debt.status.value if debt.status is not None else None,
    }


def publish_ledger_event(event_type: str, actor_id: Optional[str], payload: Dict[str, Any]) -> bool:
    """
    Announce a committed ledger change.

    The event is always logged. When RabbitMQ is enabled it is also published
    to the ledger events exchange. Returns True if the event was published.
    Publishing problems never propagate to the ledger operation.
    """
    message = {
        "event": event_type,
        "actor_id": actor_id,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": payload,
    }
    logger.info(f"Ledger event {event_type} by {actor_id}", extra={"ledger_event": message})

    if not settings.RABBITMQ_ENABLED:
        return False

    from split_ledger.rabbitmq.producer import get_rabbitmq_producer
    try:
        producer = get_rabbitmq_producer()
    except Exception as e:
        logger.error(f"RabbitMQ unavailable, dropping ledger event {event_type}: {e}")
        return False
    return producer.publish_ledger_event(event_type, message)
