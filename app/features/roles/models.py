"""
Role and UserRoleAssignment models.

``scope_key`` mirrors ``scope_id`` but is never NULL (global rows use
``GLOBAL_SCOPE_KEY``) so unique constraints also cover the global context.
"""
from sqlalchemy import (
    String,
    ForeignKey,
    Table,
    Column,
    Boolean,
    CheckConstraint,
    ForeignKeyConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.permissions.models import (
    GLOBAL_SCOPE_KEY,
    Permission,
    PermissionScope,
    ScopeColumn,
    scope_key_for,
)


_SCOPE_ID_MATCHES_SCOPE = "(scope = 'global') = (scope_id IS NULL)"
_SCOPE_KEY_MATCHES_ID = f"scope_key = COALESCE(scope_id, '{GLOBAL_SCOPE_KEY}')"


# Role-Permission relationship
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(26), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base, TimestampMixin):
    """
    Named bundle of permissions, e.g. "Manager" for one organization.

    Default roles (``is_default``) are system managed and cannot be deleted.
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("name", "scope", "scope_key", name="uq_roles_name_scope"),
        # Target of the assignment composite foreign key
        UniqueConstraint("id", "scope", "scope_key", name="uq_roles_id_scope"),
        CheckConstraint(_SCOPE_ID_MATCHES_SCOPE, name="ck_roles_scope_id"),
        CheckConstraint(_SCOPE_KEY_MATCHES_ID, name="ck_roles_scope_key"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    scope: Mapped[PermissionScope] = mapped_column(ScopeColumn, nullable=False, index=True)
    
    # Organization or event id; no foreign key since the target table depends on scope
    scope_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    scope_key: Mapped[str] = mapped_column(String(26), nullable=False)
    
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    permissions: Mapped[list[Permission]] = relationship(
        Permission,
        secondary=role_permissions,
        lazy="selectin",
        order_by=Permission.name,
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("scope_key", scope_key_for(kwargs.get("scope_id")))
        super().__init__(**kwargs)

    @property
    def permission_names(self) -> list[str]:
        return [permission.name for permission in self.permissions]
    
    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, scope={self.scope.value}, scope_id={self.scope_id})>"


class UserRoleAssignment(Base, TimestampMixin):
    """
    Binding of one user to one role within one scope context.

    ``scope``/``scope_id`` are denormalized from the role; the composite
    foreign key rejects any row whose copy disagrees with the role.
    """
    __tablename__ = "user_role_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "scope_key", name="uq_user_role_assignments_user_scope"),
        ForeignKeyConstraint(
            ["role_id", "scope", "scope_key"],
            ["roles.id", "roles.scope", "roles.scope_key"],
            ondelete="CASCADE",
            name="fk_user_role_assignments_role",
        ),
        CheckConstraint(_SCOPE_ID_MATCHES_SCOPE, name="ck_user_role_assignments_scope_id"),
        CheckConstraint(_SCOPE_KEY_MATCHES_ID, name="ck_user_role_assignments_scope_key"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    role_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    scope: Mapped[PermissionScope] = mapped_column(ScopeColumn, nullable=False, index=True)
    scope_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    scope_key: Mapped[str] = mapped_column(String(26), nullable=False)

    @classmethod
    def for_role(cls, user_id: str, role: Role) -> "UserRoleAssignment":
        """Build an assignment whose scope columns are copied from ``role``."""
        return cls(
            user_id=user_id,
            role_id=role.id,
            scope=role.scope,
            scope_id=role.scope_id,
            scope_key=role.scope_key,
        )
    
    def __repr__(self) -> str:
        return f"<UserRoleAssignment(user_id={self.user_id}, role_id={self.role_id}, scope_key={self.scope_key})>"
