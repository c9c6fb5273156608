from collections import deque
from concurrent.futures import Executor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol
import json
import logging

from stockroom.db import Database
from stockroom.models import AuditEvent


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditFact:
    actor: Optional[int]
    action: str
    entity_id: str
    before: Optional[dict[str, Any]]
    after: Optional[dict[str, Any]]
    entity_type: str = "Stock"
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


class AuditSink(Protocol):
    def record(self, fact: AuditFact) -> None:
        ...


class DatabaseAuditSink:
    """Persists facts to the audit log table in a session of its own."""

    def __init__(self, database: Database):
        self.database = database

    def record(self, fact: AuditFact) -> None:
        session = self.database.session()
        try:
            session.add(
                AuditEvent(
                    user_id=fact.actor,
                    action=fact.action,
                    entity_type=fact.entity_type,
                    entity_id=str(fact.entity_id),
                    old_values=json.dumps(fact.before, default=str) if fact.before is not None else None,
                    new_values=json.dumps(fact.after, default=str) if fact.after is not None else None,
                    created_at=fact.occurred_at,
                )
            )
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class AuditHook:
    """Best-effort delivery of committed stock facts.

    Delivery failures are logged and parked in ``failed``; they never reach
    the caller whose ledger change already committed.
    """

    def __init__(self, sink: AuditSink, *, executor: Optional[Executor] = None, failed_queue_size: int = 1000):
        self.sink = sink
        self.executor = executor
        self.failed: deque[AuditFact] = deque(maxlen=failed_queue_size)

    def emit(self, fact: AuditFact) -> None:
        if self.executor is None:
            self._deliver(fact)
            return
        try:
            self.executor.submit(self._deliver, fact)
        except RuntimeError:
            logger.warning("Audit executor unavailable; delivering %s for %s inline", fact.action, fact.entity_id)
            self._deliver(fact)

    def _deliver(self, fact: AuditFact) -> bool:
        try:
            self.sink.record(fact)
        except Exception:
            logger.exception(
                "Audit emission failed: action=%s entity=%s:%s actor=%s",
                fact.action,
                fact.entity_type,
                fact.entity_id,
                fact.actor,
            )
            self.failed.append(fact)
            return False
        return True

    def retry_failed(self) -> int:
        """Redeliver parked facts; returns how many went through."""
        pending = []
        while self.failed:
            pending.append(self.failed.popleft())
        delivered = sum(1 for fact in pending if self._deliver(fact))
        if pending:
            logger.info("Audit retry delivered %s of %s facts", delivered, len(pending))
        return delivered
