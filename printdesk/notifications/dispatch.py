"""Hand-off from the lifecycle engine to notification delivery."""

import logging

from printdesk.notifications.tasks import deliver_events

logger = logging.getLogger(__name__)


class CeleryNotifier:
    """
    Queues events for delivery after the change that produced them is
    committed.

    A failure here (broker down, relay error) is logged and swallowed: the
    state change has already been persisted and stays committed.
    """

    def emit(self, events):
        events = list(events)
        if not events:
            return False
        try:
            deliver_events.delay([event.to_dict() for event in events])
        except Exception as e:
            logger.error(
                f"Failed to dispatch {len(events)} notification(s) "
                f"for request {events[0].request_id}: {e}",
                exc_info=True
            )
            return False
        return True
