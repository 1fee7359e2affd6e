"""
Initial schema - all 13 tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _fk(name: str, target: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), sa.ForeignKey(target), nullable=nullable)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # 1. Companies
    op.create_table(
        "companies",
        _uuid_pk("company_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("industry_type", sa.String(100), nullable=False, server_default="Other"),
        sa.Column("currency", sa.String(10), nullable=False, server_default="USD"),
        sa.Column("concerns", JSONB, server_default=sa.text("'[]'::jsonb")),
        sa.Column("at_risk_days", sa.Integer, nullable=False, server_default="60"),
        sa.Column("dead_days", sa.Integer, nullable=False, server_default="90"),
        sa.Column("alert_email", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("alert_sms", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("xyz_x", sa.Integer, nullable=False, server_default="70"),
        sa.Column("xyz_y", sa.Integer, nullable=False, server_default="20"),
        sa.Column("xyz_z", sa.Integer, nullable=False, server_default="10"),
        sa.Column("setup_completed", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("at_risk_days > 0 AND dead_days > at_risk_days", name="ck_company_aging_thresholds"),
    )

    # 2. Users
    op.create_table(
        "users",
        _uuid_pk("user_id"),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), nullable=False, server_default="warehouse_manager"),
        _fk("company_id", "companies.company_id", nullable=True),
        _fk("invited_by", "users.user_id", nullable=True),
        sa.Column("email_verified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("reset_token", sa.String(128)),
        sa.Column("reset_token_expires", sa.DateTime),
        sa.Column("last_login", sa.DateTime),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("role IN ('super_admin', 'warehouse_manager')", name="ck_user_role"),
    )
    op.create_index("ix_users_company", "users", ["company_id"])

    # 3. Warehouses
    op.create_table(
        "warehouses",
        _uuid_pk("warehouse_id"),
        _fk("company_id", "companies.company_id"),
        sa.Column("code", sa.String(16), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("street", sa.String(255), nullable=False, server_default=""),
        sa.Column("city", sa.String(100), nullable=False, server_default=""),
        sa.Column("state", sa.String(100), nullable=False, server_default=""),
        sa.Column("pin", sa.String(20), nullable=False, server_default=""),
        sa.Column("country", sa.String(100), nullable=False, server_default="India"),
        _fk("manager_id", "users.user_id", nullable=True),
        sa.Column("capacity", sa.Integer, nullable=False, server_default="1000"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="ck_warehouse_capacity_positive"),
    )
    op.create_index("ix_warehouses_company", "warehouses", ["company_id"])

    # 4. User ↔ Warehouse assignments
    op.create_table(
        "user_warehouses",
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.user_id"), primary_key=True),
        sa.Column("warehouse_id", UUID(as_uuid=True), sa.ForeignKey("warehouses.warehouse_id"), primary_key=True),
        sa.Column("assigned_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )

    # 5. Warehouse code sequence (seeded so allocation always has a row to lock)
    sequences = op.create_table(
        "warehouse_code_sequences",
        sa.Column("name", sa.String(50), primary_key=True),
        sa.Column("last_value", sa.Integer, nullable=False, server_default="0"),
    )
    op.bulk_insert(sequences, [{"name": "warehouse", "last_value": 0}])

    # 6. Product categories
    op.create_table(
        "product_categories",
        _uuid_pk("category_id"),
        _fk("company_id", "companies.company_id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("aging_concern", sa.String(20), nullable=False, server_default="moderate"),
        sa.Column("description", sa.Text),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("company_id", "name", name="uq_category_company_name"),
        sa.CheckConstraint("aging_concern IN ('slow', 'moderate', 'fast', 'expiry')", name="ck_category_aging_concern"),
    )

    # 7. Products
    op.create_table(
        "products",
        _uuid_pk("product_id"),
        _fk("company_id", "companies.company_id"),
        _fk("category_id", "product_categories.category_id"),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("unit_price", sa.Float, nullable=False),
        sa.Column("unit_type", sa.String(30), nullable=False),
        sa.Column("reorder_level", sa.Integer, nullable=False, server_default="10"),
        sa.Column("barcode", sa.String(100)),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        _fk("created_by", "users.user_id", nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("company_id", "sku", name="uq_product_company_sku"),
        sa.CheckConstraint("unit_price >= 0", name="ck_product_price_non_negative"),
    )
    op.create_index("ix_products_category", "products", ["category_id"])

    # 8. Stock batches
    op.create_table(
        "stock",
        _uuid_pk("stock_id"),
        _fk("company_id", "companies.company_id"),
        _fk("product_id", "products.product_id"),
        _fk("warehouse_id", "warehouses.warehouse_id"),
        sa.Column("batch_id", sa.String(150), nullable=False),
        sa.Column("quantity_received", sa.Integer, nullable=False),
        sa.Column("quantity_available", sa.Integer, nullable=False),
        sa.Column("quantity_damaged", sa.Integer, nullable=False, server_default="0"),
        sa.Column("entry_date", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("expiry_date", sa.DateTime),
        sa.Column("age_in_days", sa.Integer),
        sa.Column("status", sa.String(20), nullable=False, server_default="healthy"),
        sa.Column("entry_photos", JSONB, server_default=sa.text("'[]'::jsonb")),
        sa.Column("notes", sa.Text),
        _fk("created_by", "users.user_id", nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity_available >= 0", name="ck_stock_available_non_negative"),
        sa.CheckConstraint("quantity_damaged >= 0", name="ck_stock_damaged_non_negative"),
        sa.CheckConstraint("status IN ('healthy', 'at_risk', 'dead')", name="ck_stock_status"),
    )
    op.create_index("ix_stock_company_status", "stock", ["company_id", "status"])
    op.create_index("ix_stock_product_warehouse", "stock", ["product_id", "warehouse_id"])
    op.create_index("ix_stock_batch", "stock", ["batch_id"])

    # 9. Stock movements
    op.create_table(
        "stock_movements",
        _uuid_pk("movement_id"),
        _fk("company_id", "companies.company_id"),
        _fk("stock_id", "stock.stock_id"),
        _fk("product_id", "products.product_id"),
        sa.Column("movement_type", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        _fk("from_warehouse_id", "warehouses.warehouse_id", nullable=True),
        _fk("to_warehouse_id", "warehouses.warehouse_id", nullable=True),
        sa.Column("reason", sa.String(100)),
        sa.Column("notes", sa.Text),
        _fk("performed_by", "users.user_id", nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        sa.CheckConstraint("movement_type IN ('in', 'out', 'transfer', 'adjustment')", name="ck_movement_type"),
    )
    op.create_index("ix_movements_company_created", "stock_movements", ["company_id", "created_at"])

    # 10. Alerts
    op.create_table(
        "alerts",
        _uuid_pk("alert_id"),
        _fk("company_id", "companies.company_id"),
        _fk("stock_id", "stock.stock_id", nullable=True),
        _fk("product_id", "products.product_id", nullable=True),
        _fk("warehouse_id", "warehouses.warehouse_id", nullable=True),
        sa.Column("alert_type", sa.String(30), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("recommendation", sa.Text),
        sa.Column("metadata", JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        _fk("acknowledged_by", "users.user_id", nullable=True),
        sa.Column("acknowledged_at", sa.DateTime),
        _fk("resolved_by", "users.user_id", nullable=True),
        sa.Column("resolved_at", sa.DateTime),
        sa.Column("resolution_notes", sa.Text),
        *_timestamps(),
        sa.CheckConstraint(
            "alert_type IN ('dead_inventory', 'aging_inventory', 'low_stock', 'damage')", name="ck_alert_type"
        ),
        sa.CheckConstraint("severity IN ('critical', 'warning', 'info')", name="ck_alert_severity"),
        sa.CheckConstraint(
            "status IN ('open', 'acknowledged', 'resolved', 'dismissed')", name="ck_alert_status"
        ),
    )
    op.create_index("ix_alerts_company_status", "alerts", ["company_id", "status"])
    op.create_index("ix_alerts_stock", "alerts", ["stock_id"])

    # 11. Notifications
    op.create_table(
        "notifications",
        _uuid_pk("notification_id"),
        _fk("company_id", "companies.company_id"),
        _fk("user_id", "users.user_id", nullable=True),
        sa.Column("notification_type", sa.String(30), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("link", sa.String(500)),
        sa.Column("metadata", JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("status", sa.String(20), nullable=False, server_default="unread"),
        sa.Column("read_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "notification_type IN ('stock_added', 'stock_low', 'stock_dead', 'transfer_initiated', "
            "'transfer_completed', 'user_joined', 'damage_reported', 'product_added', 'product_updated')",
            name="ck_notification_type",
        ),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="ck_notification_priority"),
        sa.CheckConstraint("status IN ('unread', 'read')", name="ck_notification_status"),
    )
    op.create_index(
        "ix_notifications_company_user_status", "notifications", ["company_id", "user_id", "status"]
    )

    # 12. Invitations
    op.create_table(
        "invitations",
        _uuid_pk("invitation_id"),
        _fk("company_id", "companies.company_id"),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("assigned_warehouses", JSONB, server_default=sa.text("'[]'::jsonb")),
        sa.Column("token", sa.String(128), nullable=False, unique=True),
        sa.Column("expires_at", sa.DateTime, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        _fk("invited_by", "users.user_id"),
        sa.Column("personal_message", sa.Text),
        sa.Column("accepted_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('super_admin', 'warehouse_manager')", name="ck_invitation_role"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'expired', 'cancelled')", name="ck_invitation_status"
        ),
    )
    op.create_index("ix_invitations_email_status", "invitations", ["email", "status"])

    # 13. Audit logs
    op.create_table(
        "audit_logs",
        _uuid_pk("log_id"),
        _fk("company_id", "companies.company_id", nullable=True),
        _fk("user_id", "users.user_id", nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(64)),
        sa.Column("details", JSONB, server_default=sa.text("'{}'::jsonb")),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_company_created", "audit_logs", ["company_id", "created_at"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "invitations",
        "notifications",
        "alerts",
        "stock_movements",
        "stock",
        "products",
        "product_categories",
        "warehouse_code_sequences",
        "user_warehouses",
        "warehouses",
        "users",
        "companies",
    ):
        op.drop_table(table)
