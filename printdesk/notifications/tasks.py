"""Notification delivery Celery task."""

import logging

from flask import current_app

from printdesk.extensions import celery
from printdesk.lifecycle.events import NotificationEvent

logger = logging.getLogger(__name__)


@celery.task(name='printdesk.notifications.deliver_events', ignore_result=True)
def deliver_events(events):
    """
    Publish a batch of events, in order, through the app's fan-out service.

    One batch holds every event of one lifecycle change, so the requester
    and the print operators hear about it in emission order. Delivery is
    best-effort: the task is never retried.

    Args:
        events: List of NotificationEvent.to_dict() payloads
    """
    fanout = current_app.extensions['printdesk.fanout']

    for payload in events:
        event = NotificationEvent.from_dict(payload)
        logger.debug(f"Publishing {event.kind.value} for request {event.request_id}")
        fanout.publish(event)

    return len(events)
