"""Realtime change notifications for message rows.

Changes are staged on the SQLAlchemy session while a transaction is open and
published to subscribers only after it commits; a rollback discards them.
Subscribers register for a table with an optional row filter and read events
from their own queue until they close.
"""

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy import event
from sqlalchemy.orm import Session, attributes, object_session

logger = logging.getLogger(__name__)

PENDING_KEY = 'pending_change_events'


@dataclass(frozen=True)
class ChangeEvent:
    """A committed insert or update on a table"""

    table: str
    event_type: str  # INSERT or UPDATE
    record: Dict = field(default_factory=dict)
    participants: Tuple[int, ...] = ()

    def matches(self, table, row_filter=None):
        if table != self.table:
            return False
        for key, value in (row_filter or {}).items():
            if self.record.get(key) != value:
                return False
        return True

    def to_dict(self):
        return {
            'table': self.table,
            'type': self.event_type,
            'record': self.record,
        }

    def to_sse(self):
        return f"event: {self.event_type.lower()}\ndata: {json.dumps(self.to_dict())}\n\n"


class Subscription:
    """One listener's view of the feed; discards everything once closed"""

    def __init__(self, feed, table, row_filter=None, predicate=None, maxsize=1000):
        self.feed = feed
        self.table = table
        self.row_filter = dict(row_filter or {})
        self.predicate: Optional[Callable[[ChangeEvent], bool]] = predicate
        self._queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self):
        return self._closed.is_set()

    def wants(self, change):
        if not change.matches(self.table, self.row_filter):
            return False
        return self.predicate is None or self.predicate(change)

    def deliver(self, change):
        if self.closed or not self.wants(change):
            return False
        try:
            self._queue.put_nowait(change)
        except queue.Full:
            logger.warning('Dropping %s event for slow subscriber on %s', change.event_type, self.table)
            return False
        return True

    def get(self, timeout=None):
        """Next event, or None on timeout or once closed"""
        if self.closed:
            return None
        try:
            change = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        return None if self.closed else change

    def drain(self):
        events = []
        while True:
            change = self.get(timeout=0)
            if change is None:
                return events
            events.append(change)

    def close(self):
        if self.closed:
            return
        self._closed.set()
        self.feed.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, table, row_filter=None, predicate=None):
        subscription = Subscription(self, table, row_filter=row_filter, predicate=predicate)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def subscriber_count(self):
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change):
        with self._lock:
            subscriptions = list(self._subscriptions)
        delivered = 0
        for subscription in subscriptions:
            if subscription.deliver(change):
                delivered += 1
        return delivered

    def stage(self, session, change):
        """Queue a change for publication when the session commits"""
        session.info.setdefault(PENDING_KEY, []).append(change)


change_feed = ChangeFeed()


def message_change(message, event_type, conversation=None):
    conversation = conversation or message.conversation
    if conversation is None and message.conversation_id is not None:
        # Pending rows added by foreign key only
        from studenthousing.models.conversation import Conversation

        session = object_session(message)
        if session is not None:
            conversation = session.get(Conversation, message.conversation_id)
    return ChangeEvent(
        table='messages',
        event_type=event_type,
        record={
            'id': message.id,
            'conversation_id': message.conversation_id,
            'sender_id': message.sender_id,
            'read': message.read,
        },
        participants=tuple(conversation.participant_ids()) if conversation else (),
    )


def _stage_message_changes(session, flush_context):
    from studenthousing.models.conversation import Message

    for obj in session.new:
        if isinstance(obj, Message):
            change_feed.stage(session, message_change(obj, 'INSERT'))

    for obj in session.dirty:
        if isinstance(obj, Message) and attributes.get_history(obj, 'read').has_changes():
            change_feed.stage(session, message_change(obj, 'UPDATE'))


def _publish_staged(session):
    for change in session.info.pop(PENDING_KEY, []):
        change_feed.publish(change)


def _discard_staged(session):
    session.info.pop(PENDING_KEY, None)


def register_session_hooks(session_class=Session):
    if event.contains(session_class, 'after_flush', _stage_message_changes):
        return
    event.listen(session_class, 'after_flush', _stage_message_changes)
    event.listen(session_class, 'after_commit', _publish_staged)
    event.listen(session_class, 'after_rollback', _discard_staged)


def event_stream(subscription, keepalive=15):
    """Server-sent event frames for a subscription until it closes"""
    try:
        yield ': connected\n\n'
        while not subscription.closed:
            change = subscription.get(timeout=keepalive)
            if change is None:
                yield ': keepalive\n\n'
                continue
            yield change.to_sse()
    finally:
        subscription.close()
