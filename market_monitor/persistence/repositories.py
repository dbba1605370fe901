"""Data access for subscription records."""

import logging
from typing import List, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market_monitor.domain.models import Subscription

from .exceptions import PersistenceError
from .schema import SubscriptionRecord

logger = logging.getLogger(__name__)


class SubscriptionRepository:
    """Reads and replaces subscription rows within a caller-owned session."""

    def __init__(self, session: Session):
        self.session = session

    def list_all(self) -> List[Subscription]:
        """All subscriptions in their persisted insertion order.

        Raises:
            PersistenceError: On database errors or undecodable rows
        """
        try:
            stmt = select(SubscriptionRecord).order_by(SubscriptionRecord.position)
            records = self.session.execute(stmt).scalars().all()
            return [record.to_domain() for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Error reading subscriptions: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read subscriptions: {e}") from e
        except ValueError as e:
            raise PersistenceError(f"Corrupt subscription row: {e}") from e

    def replace_all(self, subscriptions: Sequence[Subscription]) -> int:
        """Replace the table contents with ``subscriptions``.

        Runs inside the caller's transaction, so either the whole snapshot
        lands or none of it does.

        Returns:
            Number of rows written

        Raises:
            PersistenceError: On database errors
        """
        try:
            self.session.execute(delete(SubscriptionRecord))
            self.session.add_all(
                SubscriptionRecord.from_domain(subscription, position)
                for position, subscription in enumerate(subscriptions)
            )
            self.session.flush()
            return len(subscriptions)
        except SQLAlchemyError as e:
            logger.error(f"Error writing subscriptions: {e}", exc_info=True)
            raise PersistenceError(f"Failed to write subscriptions: {e}") from e
