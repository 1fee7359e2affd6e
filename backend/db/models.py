"""
InsydTracker Database Models

Multi-tenant via company_id on all inventory tables.

Tables:
  1. companies                 - Tenant organizations + system configuration
  2. users                     - Accounts (bound to a company after onboarding)
  3. warehouses                - Physical storage locations (system-wide WH### codes)
  4. user_warehouses           - Warehouse assignments per user
  5. warehouse_code_sequences  - Locked counter backing warehouse code allocation
  6. product_categories        - Per-company categories with aging concern class
  7. products                  - Product catalog
  8. stock                     - Stock batches (one receipt of a product at a warehouse)
  9. stock_movements           - Append-only in/out/transfer/adjustment ledger
  10. alerts                   - Aging / low stock / damage alerts
  11. notifications            - In-app notifications
  12. invitations              - Time-limited single-use invites
  13. audit_logs               - Append-only audit trail
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    event,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID

from db.session import Base


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else str(uuid.UUID(str(value)))

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


STOCK_STATUSES = ("healthy", "at_risk", "dead")
ALERT_STATUSES = ("open", "acknowledged", "resolved", "dismissed")
ALERT_TYPES = ("dead_inventory", "aging_inventory", "low_stock", "damage")
ALERT_SEVERITIES = ("critical", "warning", "info")
NOTIFICATION_TYPES = (
    "stock_added",
    "stock_low",
    "stock_dead",
    "transfer_initiated",
    "transfer_completed",
    "user_joined",
    "damage_reported",
    "product_added",
    "product_updated",
)
NOTIFICATION_PRIORITIES = ("low", "medium", "high", "critical")


def _in(values: tuple[str, ...]) -> str:
    return ", ".join(f"'{v}'" for v in values)


# ─── 1. Companies ──────────────────────────────────────────────────────────


class Company(Base):
    __tablename__ = "companies"

    company_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    industry_type = Column(String(100), nullable=False, default="Other")
    currency = Column(String(10), nullable=False, default="USD")
    concerns = Column(JSON, default=list)

    # Aging thresholds (days)
    at_risk_days = Column(Integer, nullable=False, default=60)
    dead_days = Column(Integer, nullable=False, default=90)

    # Alert channels
    alert_email = Column(Boolean, nullable=False, default=True)
    alert_sms = Column(Boolean, nullable=False, default=False)

    # XYZ classification thresholds (percent)
    xyz_x = Column(Integer, nullable=False, default=70)
    xyz_y = Column(Integer, nullable=False, default=20)
    xyz_z = Column(Integer, nullable=False, default=10)

    setup_completed = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("at_risk_days > 0 AND dead_days > at_risk_days", name="ck_company_aging_thresholds"),
    )


# ─── 2. Users ──────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    user_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False, default="warehouse_manager")
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=True)
    invited_by = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    reset_token = Column(String(128), nullable=True)
    reset_token_expires = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_users_company", "company_id"),
        CheckConstraint("role IN ('super_admin', 'warehouse_manager')", name="ck_user_role"),
    )


# ─── 3. Warehouses ─────────────────────────────────────────────────────────


class Warehouse(Base):
    __tablename__ = "warehouses"

    warehouse_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    code = Column(String(16), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    street = Column(String(255), nullable=False, default="")
    city = Column(String(100), nullable=False, default="")
    state = Column(String(100), nullable=False, default="")
    pin = Column(String(20), nullable=False, default="")
    country = Column(String(100), nullable=False, default="India")
    manager_id = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    capacity = Column(Integer, nullable=False, default=1000)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_warehouses_company", "company_id"),
        CheckConstraint("capacity > 0", name="ck_warehouse_capacity_positive"),
    )


# ─── 4. User ↔ Warehouse assignments ───────────────────────────────────────


class UserWarehouse(Base):
    __tablename__ = "user_warehouses"

    user_id = Column(GUID(), ForeignKey("users.user_id"), primary_key=True)
    warehouse_id = Column(GUID(), ForeignKey("warehouses.warehouse_id"), primary_key=True)
    assigned_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# ─── 5. Warehouse Code Sequence ────────────────────────────────────────────


class WarehouseCodeSequence(Base):
    __tablename__ = "warehouse_code_sequences"

    name = Column(String(50), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)


# ─── 6. Product Categories ─────────────────────────────────────────────────


class ProductCategory(Base):
    __tablename__ = "product_categories"

    category_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    name = Column(String(255), nullable=False)
    aging_concern = Column(String(20), nullable=False, default="moderate")
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_category_company_name"),
        CheckConstraint("aging_concern IN ('slow', 'moderate', 'fast', 'expiry')", name="ck_category_aging_concern"),
    )


# ─── 7. Products ───────────────────────────────────────────────────────────


class Product(Base):
    __tablename__ = "products"

    product_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    category_id = Column(GUID(), ForeignKey("product_categories.category_id"), nullable=False)
    sku = Column(String(100), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    unit_price = Column(Float, nullable=False)
    unit_type = Column(String(30), nullable=False)
    reorder_level = Column(Integer, nullable=False, default=10)
    barcode = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("company_id", "sku", name="uq_product_company_sku"),
        Index("ix_products_category", "category_id"),
        CheckConstraint("unit_price >= 0", name="ck_product_price_non_negative"),
    )


# ─── 8. Stock (batches) ────────────────────────────────────────────────────


class Stock(Base):
    __tablename__ = "stock"

    stock_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=False)
    warehouse_id = Column(GUID(), ForeignKey("warehouses.warehouse_id"), nullable=False)
    batch_id = Column(String(150), nullable=False)
    quantity_received = Column(Integer, nullable=False)
    quantity_available = Column(Integer, nullable=False)
    quantity_damaged = Column(Integer, nullable=False, default=0)
    entry_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    expiry_date = Column(DateTime, nullable=True)
    age_in_days = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="healthy")
    entry_photos = Column(JSON, default=list)
    notes = Column(Text, nullable=True)
    created_by = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_stock_company_status", "company_id", "status"),
        Index("ix_stock_product_warehouse", "product_id", "warehouse_id"),
        Index("ix_stock_batch", "batch_id"),
        CheckConstraint("quantity_available >= 0", name="ck_stock_available_non_negative"),
        CheckConstraint("quantity_damaged >= 0", name="ck_stock_damaged_non_negative"),
        CheckConstraint(f"status IN ({_in(STOCK_STATUSES)})", name="ck_stock_status"),
    )


def compute_age_in_days(entry_date: datetime, now: datetime | None = None) -> int:
    """Whole days elapsed since entry, never negative."""
    delta = (now or datetime.utcnow()) - entry_date
    return max(delta.days, 0)


@event.listens_for(Stock, "before_insert")
def _stock_age_on_insert(mapper, connection, target):
    # Creation paths seed age_in_days directly
    if target.age_in_days is None:
        target.age_in_days = compute_age_in_days(target.entry_date or datetime.utcnow())


@event.listens_for(Stock, "before_update")
def _stock_age_on_update(mapper, connection, target):
    if target.entry_date is not None:
        target.age_in_days = compute_age_in_days(target.entry_date)


# ─── 9. Stock Movements ────────────────────────────────────────────────────


class StockMovement(Base):
    __tablename__ = "stock_movements"

    movement_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    stock_id = Column(GUID(), ForeignKey("stock.stock_id"), nullable=False)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=False)
    movement_type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    from_warehouse_id = Column(GUID(), ForeignKey("warehouses.warehouse_id"), nullable=True)
    to_warehouse_id = Column(GUID(), ForeignKey("warehouses.warehouse_id"), nullable=True)
    reason = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    performed_by = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_movements_company_created", "company_id", "created_at"),
        CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        CheckConstraint("movement_type IN ('in', 'out', 'transfer', 'adjustment')", name="ck_movement_type"),
    )


# ─── 10. Alerts ────────────────────────────────────────────────────────────


class Alert(Base):
    __tablename__ = "alerts"

    alert_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    stock_id = Column(GUID(), ForeignKey("stock.stock_id"), nullable=True)
    product_id = Column(GUID(), ForeignKey("products.product_id"), nullable=True)
    warehouse_id = Column(GUID(), ForeignKey("warehouses.warehouse_id"), nullable=True)
    alert_type = Column(String(30), nullable=False)
    severity = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    recommendation = Column(Text, nullable=True)
    alert_metadata = Column("metadata", JSON, default=dict)
    status = Column(String(20), nullable=False, default="open")
    acknowledged_by = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    acknowledged_at = Column(DateTime)
    resolved_by = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    resolved_at = Column(DateTime)
    resolution_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_alerts_company_status", "company_id", "status"),
        Index("ix_alerts_stock", "stock_id"),
        CheckConstraint(f"alert_type IN ({_in(ALERT_TYPES)})", name="ck_alert_type"),
        CheckConstraint(f"severity IN ({_in(ALERT_SEVERITIES)})", name="ck_alert_severity"),
        CheckConstraint(f"status IN ({_in(ALERT_STATUSES)})", name="ck_alert_status"),
    )


# ─── 11. Notifications ─────────────────────────────────────────────────────


class Notification(Base):
    __tablename__ = "notifications"

    notification_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    user_id = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    notification_type = Column(String(30), nullable=False)
    priority = Column(String(20), nullable=False, default="medium")
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(500), nullable=True)
    notification_metadata = Column("metadata", JSON, default=dict)
    status = Column(String(20), nullable=False, default="unread")
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_notifications_company_user_status", "company_id", "user_id", "status"),
        CheckConstraint(f"notification_type IN ({_in(NOTIFICATION_TYPES)})", name="ck_notification_type"),
        CheckConstraint(f"priority IN ({_in(NOTIFICATION_PRIORITIES)})", name="ck_notification_priority"),
        CheckConstraint("status IN ('unread', 'read')", name="ck_notification_status"),
    )


# ─── 12. Invitations ───────────────────────────────────────────────────────


class Invitation(Base):
    __tablename__ = "invitations"

    invitation_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=False)
    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(30), nullable=False)
    assigned_warehouses = Column(JSON, default=list)
    token = Column(String(128), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    invited_by = Column(GUID(), ForeignKey("users.user_id"), nullable=False)
    personal_message = Column(Text, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_invitations_email_status", "email", "status"),
        CheckConstraint("role IN ('super_admin', 'warehouse_manager')", name="ck_invitation_role"),
        CheckConstraint("status IN ('pending', 'accepted', 'expired', 'cancelled')", name="ck_invitation_status"),
    )


# ─── 13. Audit Logs ────────────────────────────────────────────────────────


class AuditLog(Base):
    __tablename__ = "audit_logs"

    log_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    company_id = Column(GUID(), ForeignKey("companies.company_id"), nullable=True)
    user_id = Column(GUID(), ForeignKey("users.user_id"), nullable=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=True)
    details = Column(JSON, default=dict)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (Index("ix_audit_company_created", "company_id", "created_at"),)
