"""Base model classes with tenant isolation."""

from flask import has_request_context
from flask_login import current_user

from printdesk.dates import utcnow
from printdesk.errors import NotFound
from printdesk.extensions import db


class TimestampMixin:
    """``created_at``/``updated_at`` columns kept in naive UTC."""

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def touch(self):
        self.updated_at = utcnow()


class TenantScopedMixin:
    """
    Mixin providing tenant isolation for organization-owned records.

    - Endpoints query through tenant_query() / get_for_tenant(id)
    - Services and background jobs pass an explicit tenant_id
    - A record of another organization is reported exactly like a
      missing one (NotFound), so its existence is never confirmed

    Usage:
        # In request context (endpoints)
        requests = PrintRequest.tenant_query().all()
        item = PrintRequest.get_for_tenant(request_id)

        # Anywhere else
        item = PrintRequest.get_for_tenant(request_id, tenant_id=organization_id)
    """

    organization_id = db.Column(
        db.Integer,
        db.ForeignKey('organizations.id'),
        nullable=False,
        index=True
    )

    @classmethod
    def tenant_query(cls):
        """
        Returns query filtered to the current user's organization.

        Raises:
            RuntimeError: If no request context or unauthenticated user
        """
        if not has_request_context():
            raise RuntimeError(
                f"Cannot query {cls.__name__} without request context. "
                "Pass tenant_id explicitly outside of requests"
            )

        if not current_user or not current_user.is_authenticated:
            raise RuntimeError(
                f"Cannot query {cls.__name__} without authenticated user"
            )

        return cls.query.filter_by(organization_id=current_user.organization_id)

    @classmethod
    def get_for_tenant(cls, id, tenant_id=None):
        """
        Get record by ID with tenant verification.

        Args:
            id: Record ID
            tenant_id: Explicit tenant ID (uses current_user if None)

        Raises:
            NotFound: If the record is missing or owned by another tenant
        """
        if tenant_id is None:
            query = cls.tenant_query()
        else:
            query = cls.query.filter_by(organization_id=tenant_id)

        record = query.filter_by(id=id).first()
        if record is None:
            raise NotFound(f"{cls.__name__} {id} not found for tenant {tenant_id}")

        return record

    @classmethod
    def all_for_tenant(cls, tenant_id=None):
        if tenant_id is None:
            return cls.tenant_query().all()
        return cls.query.filter_by(organization_id=tenant_id).all()
