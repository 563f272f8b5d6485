"""
Event model.

Events are the scope instances for EVENT-scoped roles; each belongs to an
organization.
"""
from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Event(Base, TimestampMixin):
    __tablename__ = "events"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    
    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"
