"""Create properties and reservations tables

Revision ID: 3f1c9a7d2b4e
Revises:
Create Date: 2025-02-03 10:12:31.418204

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b4e"
down_revision = None
branch_labels = None
depends_on = None

OVERLAP_CONSTRAINT = "ex_reservations_no_overlap"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("daily_rate", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("cleaning_fee", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("minimum_stay", sa.Integer(), nullable=True),
        sa.Column("maximum_stay", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_properties_owner_id", "properties", ["owner_id"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("booking_reference", sa.String(length=100), nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("property_id", sa.String(length=36), nullable=False),
        sa.Column("tenant_id", sa.String(length=64), nullable=True),
        sa.Column("guest_name", sa.String(length=100), nullable=True),
        sa.Column("guest_email", sa.String(length=255), nullable=True),
        sa.Column("guest_phone", sa.String(length=20), nullable=True),
        sa.Column("number_of_guests", sa.Integer(), server_default="1", nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=False),
        sa.Column("number_of_nights", sa.Integer(), nullable=False),
        sa.Column("base_rate", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "cleaning_fee", sa.Numeric(precision=10, scale=2), server_default="0", nullable=False
        ),
        sa.Column(
            "service_fee", sa.Numeric(precision=10, scale=2), server_default="0", nullable=False
        ),
        sa.Column("total_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "amount_paid", sa.Numeric(precision=10, scale=2), server_default="0", nullable=False
        ),
        sa.Column("amount_due", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "payment_status", sa.String(length=20), server_default="PENDING", nullable=False
        ),
        sa.Column("status", sa.String(length=20), server_default="PENDING", nullable=False),
        sa.Column("source", sa.String(length=20), server_default="DIRECT", nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("guest_notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["property_id"], ["properties.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("booking_reference", name="uq_reservations_booking_reference"),
        sa.UniqueConstraint(
            "property_id", "external_id", name="uq_reservations_property_external_id"
        ),
        sa.CheckConstraint("check_in < check_out", name="ck_reservations_interval"),
        sa.CheckConstraint("number_of_guests > 0", name="ck_reservations_guests_positive"),
    )
    op.create_index("ix_reservations_tenant_id", "reservations", ["tenant_id"])
    op.create_index("ix_reservations_property_status", "reservations", ["property_id", "status"])
    op.create_index(
        "ix_reservations_property_dates", "reservations", ["property_id", "check_in", "check_out"]
    )
    op.create_index("ix_reservations_owner_status", "reservations", ["owner_id", "status"])

    # Database-level backstop for the non-overlap invariant (PostgreSQL only)
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            f"""
            ALTER TABLE reservations
            ADD CONSTRAINT {OVERLAP_CONSTRAINT}
            EXCLUDE USING gist (
                property_id WITH =,
                tstzrange(check_in, check_out, '[)') WITH &&
            )
            WHERE (status NOT IN ('CANCELLED', 'NO_SHOW'))
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute(f"ALTER TABLE reservations DROP CONSTRAINT IF EXISTS {OVERLAP_CONSTRAINT}")

    op.drop_index("ix_reservations_owner_status", table_name="reservations")
    op.drop_index("ix_reservations_property_dates", table_name="reservations")
    op.drop_index("ix_reservations_property_status", table_name="reservations")
    op.drop_index("ix_reservations_tenant_id", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index("ix_properties_owner_id", table_name="properties")
    op.drop_table("properties")
