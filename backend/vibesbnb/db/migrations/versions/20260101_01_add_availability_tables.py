"""add properties, property_availability, property_ical_sources, bookings tables"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260101_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("host_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("ical_export_token", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_properties_host_id", "properties", ["host_id"])
    op.create_index("ix_properties_is_active", "properties", ["is_active"])

    op.create_table(
        "property_availability",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "property_id",
            sa.String(length=36),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("unit_id", sa.String(length=64), nullable=True),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("source_ref", sa.String(length=64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_property_availability_property_id",
        "property_availability",
        ["property_id"],
    )
    op.create_index(
        "ix_property_availability_source_ref",
        "property_availability",
        ["source_ref"],
    )
    op.create_index(
        "idx_availability_source",
        "property_availability",
        ["source", "source_ref"],
    )
    # unit_id NULL 행과 객실 행을 각각 유일하게 유지
    op.create_index(
        "uq_availability_property_unit_day",
        "property_availability",
        ["property_id", "unit_id", "day"],
        unique=True,
        postgresql_where=sa.text("unit_id IS NOT NULL"),
    )
    op.create_index(
        "uq_availability_property_day_no_unit",
        "property_availability",
        ["property_id", "day"],
        unique=True,
        postgresql_where=sa.text("unit_id IS NULL"),
    )

    op.create_table(
        "property_ical_sources",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "property_id",
            sa.String(length=36),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("host_id", sa.String(length=64), nullable=False),
        sa.Column("unit_id", sa.String(length=64), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("ical_url", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sync_status", sa.String(length=16), nullable=False, server_default="created"),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_property_ical_sources_property_id",
        "property_ical_sources",
        ["property_id"],
    )
    op.create_index(
        "ix_property_ical_sources_is_active",
        "property_ical_sources",
        ["is_active"],
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "property_id",
            sa.String(length=36),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("guest_id", sa.String(length=64), nullable=False),
        sa.Column("host_id", sa.String(length=64), nullable=False),
        sa.Column("guest_name", sa.String(length=100), nullable=True),
        sa.Column("unit_ids", sa.JSON(), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending_approval"),
        sa.Column("payment_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("host_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_bookings_property_id", "bookings", ["property_id"])
    op.create_index("ix_bookings_guest_id", "bookings", ["guest_id"])


def downgrade() -> None:
    op.drop_index("ix_bookings_guest_id", table_name="bookings")
    op.drop_index("ix_bookings_property_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_property_ical_sources_is_active", table_name="property_ical_sources")
    op.drop_index("ix_property_ical_sources_property_id", table_name="property_ical_sources")
    op.drop_table("property_ical_sources")

    op.drop_index("uq_availability_property_day_no_unit", table_name="property_availability")
    op.drop_index("uq_availability_property_unit_day", table_name="property_availability")
    op.drop_index("idx_availability_source", table_name="property_availability")
    op.drop_index("ix_property_availability_source_ref", table_name="property_availability")
    op.drop_index("ix_property_availability_property_id", table_name="property_availability")
    op.drop_table("property_availability")

    op.drop_index("ix_properties_is_active", table_name="properties")
    op.drop_index("ix_properties_host_id", table_name="properties")
    op.drop_table("properties")
