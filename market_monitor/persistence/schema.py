"""ORM schema for persisted subscriptions."""

import json
import logging
from typing import List

from sqlalchemy import Column, Integer, String, Text, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from market_monitor.domain.models import Subscription
from market_monitor.utils.timestamps import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

Base = declarative_base()


class SubscriptionRecord(Base):
    """One row per subscriber.

    The filter lists are stored as JSON arrays in text columns; ``position``
    keeps the registry's insertion order across restarts.
    """

    __tablename__ = "subscriptions"

    subscriber_id = Column(Integer, primary_key=True, autoincrement=False)
    position = Column(Integer, nullable=False, index=True)
    agents = Column(Text, nullable=False, default="[]")
    keywords = Column(Text, nullable=False, default="[]")
    tags = Column(Text, nullable=False, default="[]")
    created_at = Column(String(50), nullable=False)

    def to_domain(self) -> Subscription:
        return Subscription(
            subscriber_id=self.subscriber_id,
            agents=_load_list(self.agents),
            keywords=_load_list(self.keywords),
            tags=_load_list(self.tags),
            created_at=parse_timestamp(self.created_at) or utc_now(),
        )

    @classmethod
    def from_domain(cls, subscription: Subscription, position: int) -> "SubscriptionRecord":
        return cls(
            subscriber_id=subscription.subscriber_id,
            position=position,
            agents=json.dumps(subscription.agents),
            keywords=json.dumps(subscription.keywords),
            tags=json.dumps(subscription.tags),
            created_at=format_timestamp(subscription.created_at),
        )


def _load_list(raw: str) -> List[str]:
    if not raw:
        return []
    value = json.loads(raw)
    if not isinstance(value, list):
        raise ValueError(f"Expected JSON array, got {type(value).__name__}")
    return [str(item) for item in value]


def create_schema(engine: Engine) -> None:
    """Create missing tables. Safe to call repeatedly."""
    Base.metadata.create_all(engine, checkfirst=True)
    logger.info(f"Database schema ready. Tables: {', '.join(inspect(engine).get_table_names())}")
