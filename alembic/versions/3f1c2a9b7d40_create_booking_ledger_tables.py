"""Create hostel booking ledger tables

Revision ID: 3f1c2a9b7d40
Revises:
Create Date: 2026-10-18 09:12:31.482210

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c2a9b7d40"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "hostel"
ACTIVE_STATUS_PREDICATE = "status IN ('pending', 'confirmed', 'checked_in')"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "hostels",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        schema=SCHEMA,
    )
    op.create_table(
        "room_types",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "hostel_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.hostels.id"), nullable=False
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price_per_semester", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_per_month", sa.Numeric(10, 2), nullable=False),
        sa.Column("price_per_week", sa.Numeric(10, 2), nullable=True),
        sa.Column("allowed_genders", sa.JSON(), nullable=False),
        schema=SCHEMA,
    )
    op.create_table(
        "rooms",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "hostel_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.hostels.id"), nullable=False
        ),
        sa.Column(
            "room_type_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.room_types.id"), nullable=False
        ),
        sa.Column("room_number", sa.String(20), nullable=False),
        sa.Column("max_occupancy", sa.Integer(), nullable=False),
        sa.Column("current_occupancy", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint(
            "current_occupancy >= 0 AND current_occupancy <= max_occupancy",
            name="ck_rooms_occupancy_bounds",
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_hostel_rooms_hostel_id", "rooms", ["hostel_id"], schema=SCHEMA)
    op.create_table(
        "students",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("gender", sa.String(30), nullable=True),
        schema=SCHEMA,
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "hostel_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.hostels.id"), nullable=False
        ),
        sa.Column("room_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.rooms.id"), nullable=False),
        sa.Column("student_id", sa.String(36), nullable=False),
        sa.Column("booking_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("check_in_date", sa.Date(), nullable=False),
        sa.Column("check_out_date", sa.Date(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("amount_paid", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("amount_due", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("booking_fee", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("booking_fee_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("booking_fee_paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_due_date", sa.Date(), nullable=True),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("check_out_date > check_in_date", name="ck_bookings_date_order"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_bookings_amount_paid_non_negative"),
        sa.CheckConstraint("amount_due >= 0", name="ck_bookings_amount_due_non_negative"),
        schema=SCHEMA,
    )
    for column in ("hostel_id", "room_id", "student_id", "status", "payment_status"):
        op.create_index(f"ix_hostel_bookings_{column}", "bookings", [column], schema=SCHEMA)
    op.create_index(
        "uq_bookings_student_active",
        "bookings",
        ["student_id"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text(ACTIVE_STATUS_PREDICATE),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "booking_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.bookings.id"), nullable=False
        ),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("payment_type", sa.String(30), nullable=False),
        sa.Column("transaction_ref", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("received_by", sa.String(100), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        schema=SCHEMA,
    )
    op.create_index("ix_hostel_payments_booking_id", "payments", ["booking_id"], schema=SCHEMA)

    op.create_table(
        "deposits",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("deposit_type", sa.String(30), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=False, unique=True),
        sa.Column("gateway_reference", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_hostel_deposits_user_id", "deposits", ["user_id"], schema=SCHEMA)
    op.create_index("ix_hostel_deposits_status", "deposits", ["status"], schema=SCHEMA)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("deposits", schema=SCHEMA)
    op.drop_table("payments", schema=SCHEMA)
    op.drop_index("uq_bookings_student_active", table_name="bookings", schema=SCHEMA)
    op.drop_table("bookings", schema=SCHEMA)
    op.drop_table("students", schema=SCHEMA)
    op.drop_table("rooms", schema=SCHEMA)
    op.drop_table("room_types", schema=SCHEMA)
    op.drop_table("hostels", schema=SCHEMA)
