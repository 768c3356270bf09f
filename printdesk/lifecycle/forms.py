"""Parsing of print request submissions."""

from printdesk.dates import parse_due_datetime
from printdesk.errors import ValidationError
from printdesk.models import DeliveryMethod, PrintFormat, RequestStatus

MAX_TITLE_LENGTH = 255
MAX_ROOM_LENGTH = 64
MAX_COPIES = 1000

# Older clients send the short spellings
ENUM_ALIASES = {
    'SINGLE_SIDE': 'SINGLE_SIDED',
    'DOUBLE_SIDE': 'DOUBLE_SIDED',
}


def parse_choice(enum_cls, value, field):
    """Parse ``single-sided``, ``SINGLE_SIDED`` and friends into ``enum_cls``."""
    if isinstance(value, enum_cls):
        return value
    if value is None or str(value).strip() == '':
        raise ValidationError(f'{field} is required')
    key = str(value).strip().upper().replace('-', '_').replace(' ', '_')
    key = ENUM_ALIASES.get(key, key)
    try:
        return enum_cls(key)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise ValidationError(f'Invalid {field}: {value}. Expected one of: {allowed}') from None


def parse_status(value):
    return parse_choice(RequestStatus, value, 'status')


def parse_copies(value):
    if value is None or str(value).strip() == '':
        raise ValidationError('copies is required')
    try:
        copies = int(str(value).strip())
    except ValueError:
        raise ValidationError(f'copies must be a whole number, got {value}') from None
    if copies < 1:
        raise ValidationError('copies must be at least 1')
    if copies > MAX_COPIES:
        raise ValidationError(f'copies must not exceed {MAX_COPIES}')
    return copies


class PrintRequestForm:
    """Validated fields of a new print request (everything but the file)."""

    def __init__(self, title, copies, print_format, delivery_method, delivery_room, due_at):
        self.title = title
        self.copies = copies
        self.print_format = print_format
        self.delivery_method = delivery_method
        self.delivery_room = delivery_room
        self.due_at = due_at

    @classmethod
    def from_mapping(cls, data, tz_name):
        """
        Build a form from request fields.

        Args:
            data: Mapping of submitted fields (form or JSON)
            tz_name: Zone used for a due date submitted without offset

        Raises:
            ValidationError: First missing or malformed field
        """
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError('title is required')
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f'title must be at most {MAX_TITLE_LENGTH} characters')

        copies = parse_copies(data.get('copies'))
        print_format = parse_choice(PrintFormat, data.get('print_format'), 'print_format')
        delivery_method = parse_choice(DeliveryMethod, data.get('delivery_method'), 'delivery_method')

        delivery_room = (data.get('delivery_room') or '').strip() or None
        if delivery_method == DeliveryMethod.ROOM_DELIVERY:
            if not delivery_room:
                raise ValidationError('delivery_room is required for room delivery')
            if len(delivery_room) > MAX_ROOM_LENGTH:
                raise ValidationError(f'delivery_room must be at most {MAX_ROOM_LENGTH} characters')
        else:
            # A room only means something for room delivery
            delivery_room = None

        due_at = parse_due_datetime(data.get('due_at') or data.get('due_date_time'), tz_name)

        return cls(title, copies, print_format, delivery_method, delivery_room, due_at)
