"""Notification events produced by lifecycle changes."""

import enum
import uuid
from dataclasses import asdict, dataclass, field

from printdesk.dates import isoformat_utc, utcnow
from printdesk.models import RequestStatus


class Audience(str, enum.Enum):
    REQUESTER = 'requester'              # requester of one print request
    PRINT_OPERATORS = 'print_operators'  # every print operator of the organization
    REQUESTERS = 'requesters'            # every requester of the organization


class EventKind(str, enum.Enum):
    APPROVED = 'approved'
    REJECTED = 'rejected'
    IN_PROGRESS = 'in-progress'
    COMPLETED = 'completed'
    NEW_JOB = 'new-job'
    FILE_DOWNLOADED = 'file-downloaded'
    ANNOUNCEMENT = 'announcement'


STATUS_EVENTS = {
    RequestStatus.APPROVED: (EventKind.APPROVED, 'Your print request has been approved'),
    RequestStatus.REJECTED: (EventKind.REJECTED, 'Your print request has been rejected'),
    RequestStatus.IN_PROGRESS: (EventKind.IN_PROGRESS, 'Your print request is being processed'),
    RequestStatus.COMPLETED: (EventKind.COMPLETED, 'Your print request has been completed'),
}


@dataclass(frozen=True)
class NotificationEvent:
    organization_id: int
    audience: Audience
    kind: EventKind
    message: str
    request_id: int = None
    recipient_id: int = None  # set when audience is REQUESTER
    status: str = None
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    emitted_at: str = field(default_factory=lambda: isoformat_utc(utcnow()))

    def to_dict(self):
        data = asdict(self)
        data['audience'] = self.audience.value
        data['kind'] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        data['audience'] = Audience(data['audience'])
        data['kind'] = EventKind(data['kind'])
        return cls(**data)


def transition_events(print_request):
    """
    Events announcing the request's new status, in delivery order.

    Always one event to the requester; approval also tells every print
    operator of the organization that a job is waiting.
    """
    kind, message = STATUS_EVENTS[print_request.status]
    events = [
        NotificationEvent(
            organization_id=print_request.organization_id,
            audience=Audience.REQUESTER,
            recipient_id=print_request.requester_id,
            kind=kind,
            message=message,
            request_id=print_request.id,
            status=print_request.status.value,
        )
    ]

    if print_request.status == RequestStatus.APPROVED:
        events.append(NotificationEvent(
            organization_id=print_request.organization_id,
            audience=Audience.PRINT_OPERATORS,
            kind=EventKind.NEW_JOB,
            message='A new print request is ready for processing',
            request_id=print_request.id,
            status=print_request.status.value,
        ))

    return events


def download_event(print_request):
    return NotificationEvent(
        organization_id=print_request.organization_id,
        audience=Audience.REQUESTER,
        recipient_id=print_request.requester_id,
        kind=EventKind.FILE_DOWNLOADED,
        message='Your document has been downloaded by the printing department',
        request_id=print_request.id,
        status=print_request.status.value,
    )


def announcement_event(organization_id, message):
    return NotificationEvent(
        organization_id=organization_id,
        audience=Audience.REQUESTERS,
        kind=EventKind.ANNOUNCEMENT,
        message=message,
    )
