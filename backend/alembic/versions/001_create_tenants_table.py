"""Create tenants table

Revision ID: 001
Revises: None
Create Date: 2026-10-16 00:00:00.000000+00:00

What:  Creates the `tenants` directory used to verify that a tenant belongs
       to the property owner who wants to impersonate it.

Rollback: downgrade() drops the table entirely.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.String(24), nullable=False, comment="24-character hex identifier"),
        sa.Column(
            "owner_id",
            sa.String(24),
            nullable=False,
            comment="Property owner that manages this tenant",
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_tenants"),
    )

    # Serves WHERE id = :tenant AND owner_id = :owner
    op.create_index("idx_tenants_owner_id_id", "tenants", ["owner_id", "id"])


def downgrade() -> None:
    op.drop_index("idx_tenants_owner_id_id", table_name="tenants")
    op.drop_table("tenants")
