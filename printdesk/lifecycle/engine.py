"""Print request lifecycle engine.

Owns the status machine of a print request and the notification events
each change produces:

    PENDING --(org admin)--> APPROVED --(print operator)--> IN_PROGRESS
       |                                                        |
       +--(org admin)--> REJECTED               (print operator)+--> COMPLETED

Every operation takes the acting user explicitly and runs the
authorization gate before touching state. A status change is committed
before its events are handed to the notifier, and a notification failure
never undoes it.

Concurrent transitions of the same request are not serialized: the last
commit wins.
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from printdesk.authz.gate import authorize, ensure_active
from printdesk.authz.permissions import (
    TRANSITION_OPERATIONS,
    VISIBLE_STATUSES,
    Operation,
    role_allows,
    transition_operation,
)
from printdesk.errors import Forbidden, InvalidTransition, NotFound, StorageError, ValidationError
from printdesk.extensions import db
from printdesk.files.validation import MAX_FILE_SIZE, validate_upload
from printdesk.lifecycle.events import announcement_event, download_event, transition_events
from printdesk.lifecycle.forms import PrintRequestForm, parse_status
from printdesk.models import PrintRequest, RequestStatus, Role

logger = logging.getLogger(__name__)

MAX_ANNOUNCEMENT_LENGTH = 500


def current_engine():
    """The engine bound to the running app by create_app()."""
    return current_app.extensions['printdesk.lifecycle']


class LifecycleEngine:
    """
    Print request operations for one application.

    Args:
        storage: FileStorage holding the uploaded artifacts
        notifier: Object with ``emit(events)``; see CeleryNotifier
        default_timezone: Zone for naive due dates when the organization
            has none configured
        max_upload_bytes: Upload size limit
    """

    def __init__(self, storage, notifier, default_timezone='UTC', max_upload_bytes=MAX_FILE_SIZE):
        self.storage = storage
        self.notifier = notifier
        self.default_timezone = default_timezone
        self.max_upload_bytes = max_upload_bytes

    # -- queries ---------------------------------------------------------

    def _scoped_query(self, actor):
        """Requests ``actor`` may see: own organization, then role scope."""
        query = PrintRequest.query.filter_by(organization_id=actor.organization_id)

        role = Role(actor.role)
        if role == Role.REQUESTER:
            query = query.filter_by(requester_id=actor.id)

        visible = VISIBLE_STATUSES[role]
        if visible is not None:
            query = query.filter(PrintRequest.status.in_(visible))

        return query

    def _load(self, actor, request_id):
        ensure_active(actor)
        return PrintRequest.get_for_tenant(request_id, tenant_id=actor.organization_id)

    def list_requests(self, actor, filters=None):
        """
        Requests visible to ``actor``, newest first.

        Args:
            filters: Optional mapping with ``status`` and, for admins,
                ``requester_id``
        """
        authorize(actor, Operation.LIST_REQUESTS)
        filters = filters or {}
        query = self._scoped_query(actor)

        if filters.get('status'):
            query = query.filter(PrintRequest.status == parse_status(filters['status']))

        if filters.get('requester_id') and actor.role == Role.ORG_ADMIN:
            try:
                requester_id = int(filters['requester_id'])
            except (TypeError, ValueError):
                raise ValidationError('requester_id must be a number') from None
            query = query.filter(PrintRequest.requester_id == requester_id)

        return query.order_by(PrintRequest.created_at.desc(), PrintRequest.id.desc()).all()

    def get_request(self, actor, request_id):
        print_request = self._load(actor, request_id)
        authorize(actor, Operation.READ_REQUEST, print_request)
        return print_request

    def status_counts(self, actor):
        """Count of visible requests per status, plus the total."""
        authorize(actor, Operation.VIEW_STATS)
        rows = (
            self._scoped_query(actor)
            .with_entities(PrintRequest.status, db.func.count(PrintRequest.id))
            .group_by(PrintRequest.status)
            .all()
        )
        counts = {status.value.lower(): 0 for status in RequestStatus}
        for status, count in rows:
            counts[RequestStatus(status).value.lower()] = count
        counts['total'] = sum(counts.values())
        return counts

    # -- commands --------------------------------------------------------

    def create_request(self, actor, data, upload):
        """
        Submit a new print request; it always starts PENDING.

        Args:
            actor: Requesting user
            data: Submitted fields, see PrintRequestForm
            upload: Werkzeug FileStorage with the document

        Raises:
            ValidationError: Missing or malformed field or file
            StorageError: The artifact or the record could not be saved
        """
        authorize(actor, Operation.CREATE_REQUEST)

        tz_name = actor.organization.timezone or self.default_timezone
        form = PrintRequestForm.from_mapping(data, tz_name)
        size, mimetype = validate_upload(upload, max_size=self.max_upload_bytes)

        file_key = self.storage.save_file(upload, actor.organization_id)

        print_request = PrintRequest(
            organization_id=actor.organization_id,  # never taken from the client
            requester_id=actor.id,
            title=form.title,
            file_key=file_key,
            mimetype=mimetype,
            size_bytes=size,
            original_filename=upload.filename,
            copies=form.copies,
            print_format=form.print_format,
            delivery_method=form.delivery_method,
            delivery_room=form.delivery_room,
            due_at=form.due_at,
            status=RequestStatus.PENDING,
        )

        try:
            db.session.add(print_request)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            # Clean up file if database insert failed
            self._discard_artifact(file_key)
            raise StorageError(f"Failed to save print request: {e}") from e

        logger.info(
            f"Print request {print_request.id} created by user {actor.id} "
            f"in org {actor.organization_id}"
        )
        return print_request

    def transition(self, actor, request_id, target_status):
        """
        Move a request along one edge of the lifecycle.

        Raises:
            ValidationError: ``target_status`` is not a status at all
            NotFound: No such request in the actor's organization
            Forbidden: The actor's role does not own this edge
            InvalidTransition: No edge from the current status to the target
        """
        target = parse_status(target_status)
        print_request = self._load(actor, request_id)

        if not any(role_allows(actor.role, op) for op in TRANSITION_OPERATIONS):
            logger.warning(f"Denied status change of request {request_id} for user {actor.id}")
            raise Forbidden(f"Role {actor.role.value} may not change request status")

        current = print_request.status
        operation = transition_operation(current, target)
        if operation is None:
            raise InvalidTransition(current.value, target.value)

        authorize(actor, operation, print_request)

        print_request.status = target
        print_request.touch()
        db.session.commit()

        logger.info(
            f"Print request {print_request.id}: {current.value} -> {target.value} "
            f"by user {actor.id}"
        )

        self.notifier.emit(transition_events(print_request))
        return print_request

    def approve(self, actor, request_id):
        return self.transition(actor, request_id, RequestStatus.APPROVED)

    def reject(self, actor, request_id):
        return self.transition(actor, request_id, RequestStatus.REJECTED)

    def delete_request(self, actor, request_id):
        """
        Delete a request and its stored artifact.

        The artifact goes first; if that fails the failure is logged and the
        record is deleted anyway.
        """
        print_request = self._load(actor, request_id)
        authorize(actor, Operation.DELETE_REQUEST, print_request)

        self._discard_artifact(print_request.file_key)

        db.session.delete(print_request)
        db.session.commit()
        logger.info(f"Print request {request_id} deleted by user {actor.id}")

    def record_download(self, actor, request_id):
        """
        Authorize a print operator's download and tell the requester.

        Raises:
            NotFound: The stored artifact is gone; nobody is notified
        """
        print_request = self._load(actor, request_id)
        authorize(actor, Operation.DOWNLOAD_FILE, print_request)
        if not self.storage.exists(print_request.file_key):
            logger.error(f"Artifact of request {request_id} missing: {print_request.file_key}")
            raise NotFound(f"Artifact of request {request_id} missing on disk")
        self.notifier.emit([download_event(print_request)])
        return print_request

    def announce(self, actor, message):
        """Broadcast a message to every requester of the actor's organization."""
        authorize(actor, Operation.ANNOUNCE)
        message = (message or '').strip()
        if not message:
            raise ValidationError('message is required')
        if len(message) > MAX_ANNOUNCEMENT_LENGTH:
            raise ValidationError(f'message must be at most {MAX_ANNOUNCEMENT_LENGTH} characters')
        event = announcement_event(actor.organization_id, message)
        self.notifier.emit([event])
        return event

    def discard_artifacts_of(self, user):
        """Remove the stored files of every request of ``user``."""
        for print_request in user.print_requests:
            self._discard_artifact(print_request.file_key)

    def _discard_artifact(self, file_key):
        try:
            self.storage.delete_file(file_key)
        except StorageError as e:
            logger.warning(f"Failed to delete stored file {file_key}: {e.detail}")
