"""
Permission catalog and audit log models.

Permissions are named capabilities tagged with the scope they apply at.
They are seeded out-of-band (see ``scripts/seed_permissions.py``) and only
read by the service layer.
"""
import enum
from typing import Any, Dict

from sqlalchemy import String, ForeignKey, JSON, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class PermissionScope(str, enum.Enum):
    """Breadth at which a permission or role applies."""
    GLOBAL = "global"
    ORGANIZATION = "organization"
    EVENT = "event"

    @property
    def requires_instance(self) -> bool:
        """Non-global scopes are bound to a concrete organization or event."""
        return self is not PermissionScope.GLOBAL


# Uniqueness key used in place of a NULL scope_id for global rows
GLOBAL_SCOPE_KEY = "global"


def scope_key_for(scope_id: str | None) -> str:
    return scope_id if scope_id is not None else GLOBAL_SCOPE_KEY


# Shared column type so roles and assignments compare equal in composite keys
ScopeColumn = SQLEnum(
    PermissionScope,
    name="permission_scope",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    validate_strings=True,
)


class Permission(Base, TimestampMixin):
    """
    Permission model, e.g. ``manage_organization_roles`` at ORGANIZATION scope.
    """
    __tablename__ = "permissions"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    scope: Mapped[PermissionScope] = mapped_column(ScopeColumn, nullable=False, index=True)
    
    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r}, scope={self.scope.value})>"


class AuditLog(Base, TimestampMixin):
    """
    Audit log for RBAC management actions.
    
    Tracks who did what, when, and from where.
    """
    __tablename__ = "audit_logs"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Actor
    user_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    
    # Action details
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    
    # Context
    organization_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    details: Mapped[Dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    
    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, user_id={self.user_id}, action={self.action}, entity={self.entity_type})>"
