import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, DefaultDict, List, Optional, Type
from uuid import UUID

logger = logging.getLogger(__name__)


# ---------------- DOMAIN EVENTS ----------------
@dataclass(frozen=True)
class QuoteRecorded:
    household_id: UUID
    quote_id: UUID
    quote_date: date
    team_member_id: Optional[UUID] = None
    skip_metrics_increment: bool = False


@dataclass(frozen=True)
class SaleRecorded:
    household_id: UUID
    sale_id: UUID
    sale_date: date
    team_member_id: Optional[UUID] = None


@dataclass(frozen=True)
class RetentionSignalReceived:
    household_id: UUID
    workflow: str            # winback | renewal
    outcome: str
    effective_date: Optional[date] = None
    changed_by: Optional[UUID] = None


@dataclass(frozen=True)
class HouseholdPromoted:
    household_id: UUID
    agency_id: UUID
    previous_status: str
    new_status: str
    reason: str
    team_member_id: Optional[UUID] = None
    first_quote_date: Optional[date] = None
    skip_metrics_increment: bool = False


Handler = Callable[[Any], Awaitable[None]]


class EventBus:
    """
    In-process publish/subscribe for domain events.

    Handlers run sequentially, in subscription order, inside the publisher's
    transaction. A handler exception propagates to the publisher.
    """

    def __init__(self):
        self._handlers: DefaultDict[Type, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: Any) -> None:
        handlers = self._handlers.get(type(event), [])
        logger.debug("Publishing %s to %d handler(s)", type(event).__name__, len(handlers))
        for handler in handlers:
            await handler(event)
