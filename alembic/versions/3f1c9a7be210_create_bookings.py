"""Create rental.bookings

Revision ID: 3f1c9a7be210
Revises:
Create Date: 2025-08-04 10:12:31.118402

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a7be210"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Upgrade schema."""
    schema = "rental"

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("property_id", sa.Uuid(), nullable=False),
        sa.Column("event_uid", sa.String(length=500), nullable=True),
        sa.Column(
            "booking_platform", sa.String(length=50), server_default="manual", nullable=False
        ),
        sa.Column("guest_name", sa.String(length=255), nullable=False),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=20), server_default="confirmed", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("reservation_url", sa.Text(), nullable=True),
        sa.Column("guest_phone_last4", sa.String(length=4), nullable=True),
        sa.Column("listing_name", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("event_uid", name="uq_bookings_event_uid"),
        schema=schema,
    )
    op.create_index(
        "ix_bookings_property_id", "bookings", ["property_id"], schema=schema
    )
    op.create_index(
        "ix_bookings_property_dates",
        "bookings",
        ["property_id", "check_in", "check_out"],
        schema=schema,
    )


def downgrade() -> None:
    """Downgrade schema."""
    schema = "rental"

    op.drop_index("ix_bookings_property_dates", table_name="bookings", schema=schema)
    op.drop_index("ix_bookings_property_id", table_name="bookings", schema=schema)
    op.drop_table("bookings", schema=schema)
