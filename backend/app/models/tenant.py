"""
RentGate Backend - Tenant SQLAlchemy Model
===========================================

What:  ORM model for the `tenants` table.
Why:   Starting an impersonation must prove the tenant belongs to the
       calling property owner. This table is the directory that answers
       "is tenant X owned by owner Y?".
Who:   Queried by TenantService; read by Alembic for migrations.

Table Design:
    - id / owner_id: 24-character hex identifiers, the same values the
      frontend carries in the `userId` and `impersonatingTenantId` cookies
    - Composite index (owner_id, id) serves the only query pattern:
      SELECT ... WHERE id = :tenant AND owner_id = :owner
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Tenant(Base):
    """A tenant account and the property owner it belongs to."""

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(24),
        primary_key=True,
        comment="24-character hex identifier",
    )

    owner_id: Mapped[str] = mapped_column(
        String(24),
        nullable=False,
        comment="Property owner that manages this tenant",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # UTC with timezone; conversion to local time happens in the frontend
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_tenants_owner_id_id", "owner_id", "id"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, owner_id={self.owner_id})>"
