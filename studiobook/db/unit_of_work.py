from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from ..services.notification_service import BackgroundDispatcher, NotificationDispatcher

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Transaction boundary shared by the ledger, booking and waitlist calls.

    Everything done through ``uow.db`` inside the ``with`` block commits or
    rolls back together. Notification events collected with :meth:`emit` are
    handed to the dispatcher only after a successful commit and are dropped on
    rollback.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher | BackgroundDispatcher | None = None,
    ) -> None:
        self.db = db
        self.dispatcher = dispatcher
        self.events: list[Any] = []
        self._transaction = None

    def __enter__(self) -> "UnitOfWork":
        self._transaction = self.db.begin_nested() if self.db.in_transaction() else self.db.begin()
        self._transaction.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        transaction, self._transaction = self._transaction, None
        transaction.__exit__(exc_type, exc, tb)
        if exc_type is not None:
            self.events.clear()
            return False
        if self.db.in_transaction():
            # begin_nested() only released a savepoint; make the work durable
            self.db.commit()
        self._publish()
        return False

    def emit(self, event: Any) -> None:
        self.events.append(event)

    def _publish(self) -> None:
        events, self.events = self.events, []
        if not events:
            return
        if self.dispatcher is None:
            logger.debug("No dispatcher configured; dropping %d events", len(events))
            return
        self.dispatcher.dispatch(events)
