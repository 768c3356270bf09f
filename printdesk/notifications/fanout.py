"""Per-organization listener registry and event fan-out.

A listener is one connected client (one open event stream). Events reach
only listeners of the event's organization that belong to its audience.
There is no backlog: a listener sees events published after it joined.
"""

import json
import logging
import queue
import threading
from collections import defaultdict

import redis

from printdesk.lifecycle.events import Audience, NotificationEvent
from printdesk.models import Role

logger = logging.getLogger(__name__)


class Listener:
    """One connected client waiting for events."""

    def __init__(self, organization_id, user_id, role, maxsize=100):
        self.organization_id = organization_id
        self.user_id = user_id
        self.role = Role(role)
        self._queue = queue.Queue(maxsize=maxsize)

    def matches(self, event):
        if event.organization_id != self.organization_id:
            return False
        if event.audience == Audience.REQUESTER:
            return event.recipient_id == self.user_id
        if event.audience == Audience.PRINT_OPERATORS:
            return self.role == Role.PRINT_OPERATOR
        if event.audience == Audience.REQUESTERS:
            return self.role == Role.REQUESTER
        return False

    def offer(self, event):
        """Queue an event without blocking; a full queue drops it."""
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(
                f"Dropped {event.kind.value} event for user {self.user_id}: listener queue full"
            )
            return False
        return True

    def get(self, timeout=None):
        """Next event, or None if nothing arrived within ``timeout`` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self):
        events = []
        while True:
            event = self.get(timeout=0)
            if event is None:
                return events
            events.append(event)

    def __repr__(self):
        return f'<Listener org={self.organization_id} user={self.user_id} {self.role.value}>'


class FanoutService:
    """
    Registry of connected listeners, keyed by organization.

    Created by the app factory and reached through ``app.extensions``.
    Publishing holds the registry lock while queueing, so every listener
    receives events in publication order.
    """

    def __init__(self, relay=None):
        self._lock = threading.Lock()
        self._listeners = defaultdict(set)
        self.relay = relay

    def add_listener(self, organization_id, user_id, role):
        listener = Listener(organization_id, user_id, role)
        with self._lock:
            self._listeners[organization_id].add(listener)
        logger.debug(f"Listener joined: {listener!r}")
        return listener

    def remove_listener(self, listener):
        with self._lock:
            group = self._listeners.get(listener.organization_id)
            if group is not None:
                group.discard(listener)
                if not group:
                    del self._listeners[listener.organization_id]
        logger.debug(f"Listener left: {listener!r}")

    def listener_count(self, organization_id):
        with self._lock:
            return len(self._listeners.get(organization_id, ()))

    def publish(self, event):
        """Deliver an event, through the relay when one is configured."""
        if self.relay is not None:
            self.relay.send(event)
            return None
        return self.deliver_local(event)

    def deliver_local(self, event):
        """
        Queue ``event`` for every matching listener in this process.

        Returns:
            int: Number of listeners that received the event
        """
        delivered = 0
        with self._lock:
            for listener in self._listeners.get(event.organization_id, ()):
                if listener.matches(event) and listener.offer(event):
                    delivered += 1
        logger.info(
            f"Delivered {event.kind.value} event for request {event.request_id} "
            f"to {delivered} listener(s) in org {event.organization_id}"
        )
        return delivered


class RedisRelay:
    """
    Carries events between processes over Redis pub/sub.

    Celery workers publish; every web process subscribes and hands what it
    receives to its own FanoutService.deliver_local().
    """

    def __init__(self, url, channel='printdesk:notifications'):
        self.channel = channel
        self._redis = redis.Redis.from_url(url)
        self._thread = None

    def send(self, event):
        self._redis.publish(self.channel, json.dumps(event.to_dict()))

    def start(self, fanout):
        def handle(message):
            event = NotificationEvent.from_dict(json.loads(message['data']))
            fanout.deliver_local(event)

        pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(**{self.channel: handle})
        self._thread = pubsub.run_in_thread(sleep_time=0.5, daemon=True)
        logger.info(f"Subscribed to notification relay channel {self.channel}")

    def stop(self):
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
