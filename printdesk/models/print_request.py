"""Print request model with tenant isolation."""

import enum

from printdesk.dates import isoformat_utc
from printdesk.extensions import db
from printdesk.models.base import TenantScopedMixin, TimestampMixin


class RequestStatus(str, enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    REJECTED = 'REJECTED'
    IN_PROGRESS = 'IN_PROGRESS'
    COMPLETED = 'COMPLETED'


class PrintFormat(str, enum.Enum):
    SINGLE_SIDED = 'SINGLE_SIDED'
    DOUBLE_SIDED = 'DOUBLE_SIDED'


class DeliveryMethod(str, enum.Enum):
    PICKUP = 'PICKUP'
    ROOM_DELIVERY = 'ROOM_DELIVERY'


class PrintRequest(db.Model, TenantScopedMixin, TimestampMixin):
    """
    A document submitted by a requester for printing.

    - organization_id (from TenantScopedMixin) and requester_id are fixed
      at creation
    - status changes only through LifecycleEngine.transition()
    - a stored status outside RequestStatus fails to load: it is treated
      as corruption, not as a state
    """

    __tablename__ = 'print_requests'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)

    requester_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id'),
        nullable=False,
        index=True
    )

    # Uploaded artifact
    file_key = db.Column(db.String(512), nullable=False)  # Relative to storage root
    mimetype = db.Column(db.String(127), nullable=False)
    size_bytes = db.Column(db.Integer, nullable=False)
    original_filename = db.Column(db.String(255), nullable=False)

    copies = db.Column(db.Integer, nullable=False)
    print_format = db.Column(db.Enum(PrintFormat, native_enum=False, length=20), nullable=False)
    delivery_method = db.Column(db.Enum(DeliveryMethod, native_enum=False, length=20), nullable=False)
    delivery_room = db.Column(db.String(64), nullable=True)
    due_at = db.Column(db.DateTime, nullable=False)  # UTC

    status = db.Column(
        db.Enum(RequestStatus, native_enum=False, length=20, validate_strings=True),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True
    )

    __table_args__ = (
        db.CheckConstraint('copies > 0', name='ck_print_requests_copies_positive'),
    )

    # Relationships
    organization = db.relationship('Organization', back_populates='print_requests')
    requester = db.relationship('User', back_populates='print_requests')

    def __repr__(self):
        return f'<PrintRequest {self.id} {self.status.value}>'

    def to_dict(self):
        """Convert to dictionary representation."""
        return {
            'id': self.id,
            'organization_id': self.organization_id,
            'title': self.title,
            'requester': {
                'id': self.requester_id,
                'name': self.requester.name if self.requester else None,
                'email': self.requester.email if self.requester else None,
            },
            'file': {
                'filename': self.original_filename,
                'mimetype': self.mimetype,
                'size': self.size_bytes,
            },
            'copies': self.copies,
            'print_format': self.print_format.value,
            'delivery_method': self.delivery_method.value,
            'delivery_room': self.delivery_room,
            'due_at': isoformat_utc(self.due_at),
            'status': self.status.value,
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at)
        }
