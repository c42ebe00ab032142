"""
Realtime bridge - row-level change notifications filtered by one column/value pair.

Channels are keyed per (table, column, value). The gateway publishes a Change
after each committed mutation; every subscription whose filter matches the
affected row receives it. Callers own the subscription lifecycle and must
unsubscribe when they go away.
"""
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENTS = (INSERT, UPDATE, DELETE)

ChannelKey = Tuple[str, str, str]


@dataclass
class Change:
    event: str
    table: str
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None

    @property
    def record(self) -> Optional[Dict[str, Any]]:
        """The row the change is about: the old row for deletes, the new row otherwise"""
        return self.old if self.event == DELETE else self.new

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event, "table": self.table, "new": self.new, "old": self.old}


ChangeHandler = Callable[[Change], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class Subscription:
    table: str
    column: str
    value: str
    handler: Optional[ChangeHandler] = None
    subscribed: bool = False
    error: Optional[str] = None
    _bridge: Optional["RealtimeBridge"] = field(default=None, repr=False)

    @property
    def key(self) -> ChannelKey:
        return (self.table, self.column, self.value)

    def unsubscribe(self) -> None:
        if self._bridge is not None:
            self._bridge.unsubscribe(self)


def schema_from_metadata(metadata) -> Dict[str, set]:
    """Table name -> column names, used to reject subscriptions to unknown tables"""
    return {name: set(table.columns.keys()) for name, table in metadata.tables.items()}


class RealtimeBridge:
    def __init__(self, schema: Optional[Mapping[str, Iterable[str]]] = None):
        self._schema = {table: set(columns) for table, columns in schema.items()} if schema is not None else None
        self._channels: Dict[ChannelKey, List[Subscription]] = {}

    @property
    def channel_count(self) -> int:
        return len(self._channels)

    def subscriber_count(self, key: ChannelKey) -> int:
        return len(self._channels.get(key, []))

    def _validate(self, table: str, column: str, value: Any) -> Optional[str]:
        if not table or not column:
            return "table and column are required"
        if value is None or str(value) == "":
            return "filter value is required"
        if self._schema is not None:
            if table not in self._schema:
                return f"Unknown table '{table}'"
            if column not in self._schema[table]:
                return f"Unknown column '{column}' on table '{table}'"
        return None

    def subscribe(self, table: str, column: str, value: Any, on_change: ChangeHandler) -> Subscription:
        error = self._validate(table, column, value)
        subscription = Subscription(
            table=table,
            column=column,
            value="" if value is None else str(value),
            handler=on_change,
        )
        if error:
            subscription.error = error
            logger.warning(f"Realtime subscription refused: {error}")
            return subscription

        subscription.subscribed = True
        subscription._bridge = self
        self._channels.setdefault(subscription.key, []).append(subscription)
        logger.debug(f"Subscribed to {table}:{column}={subscription.value}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._channels.get(subscription.key)
        if subscribers and subscription in subscribers:
            subscribers.remove(subscription)
            if not subscribers:
                del self._channels[subscription.key]
            logger.debug(f"Unsubscribed from {subscription.table}:{subscription.column}={subscription.value}")
        subscription.subscribed = False
        subscription._bridge = None

    def _matching(self, change: Change) -> List[Subscription]:
        row = change.record or {}
        matched = []
        for (table, column, value), subscribers in self._channels.items():
            if table != change.table:
                continue
            row_value = row.get(column)
            if row_value is not None and str(row_value) == value:
                matched.extend(subscribers)
        return matched

    async def publish(self, change: Change) -> int:
        """Deliver one change; returns the number of handlers invoked"""
        delivered = 0
        for subscription in self._matching(change):
            if not subscription.subscribed or subscription.handler is None:
                continue
            try:
                result = subscription.handler(change)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception(f"Realtime handler failed for {change.event} on {change.table}")
        return delivered

    def close(self) -> None:
        for subscribers in list(self._channels.values()):
            for subscription in list(subscribers):
                self.unsubscribe(subscription)
        self._channels.clear()
