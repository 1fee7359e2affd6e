"""
Company onboarding workflow.

Creates one Company, its first warehouses and categories, and binds the
onboarding user as super_admin with every new warehouse assigned. Either
all of it is persisted or none of it.
"""

import uuid
from dataclasses import dataclass
from typing import Literal

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import Conflict, NotFound, ValidationFailed, parse_uuid
from core.permissions import SUPER_ADMIN
from core.security import hash_password
from db.models import Company, ProductCategory, User, UserWarehouse, Warehouse
from db.transactions import atomic
from inventory.audit import record_audit
from inventory.codes import allocate_warehouse_codes
from inventory.warehouses import DEFAULT_CAPACITY

logger = structlog.get_logger()


# ─── Payload ───────────────────────────────────────────────────────────────


class AdminPayload(BaseModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None


class CompanyPayload(BaseModel):
    name: str | None = None
    industry_type: str = "Other"
    currency: str = "USD"
    concerns: list[str] = Field(default_factory=list)
    at_risk_days: int = Field(60, gt=0)
    dead_days: int = Field(90, gt=0)


class LocationPayload(BaseModel):
    address: str | None = None
    street: str | None = None
    city: str = ""
    state: str = ""
    pincode: str | None = None
    pin: str | None = None
    country: str | None = None


class WarehousePayload(BaseModel):
    name: str | None = None
    location: LocationPayload = Field(default_factory=LocationPayload)
    capacity: int | None = Field(None, gt=0)
    manager_id: str | None = None


class CategoryPayload(BaseModel):
    name: str
    aging_concern: Literal["slow", "moderate", "fast", "expiry"] = "moderate"
    description: str | None = None


class OnboardingRequest(BaseModel):
    company: CompanyPayload | None = None
    warehouses: list[WarehousePayload] | None = None
    categories: list[CategoryPayload] | None = None
    admin: AdminPayload | None = None


@dataclass
class OnboardingResult:
    user: User
    company: Company
    warehouses: list[Warehouse]
    categories: list[ProductCategory]


# ─── Validation ────────────────────────────────────────────────────────────


def validate_request(payload: OnboardingRequest, authenticated: bool) -> None:
    if payload.company is None or not (payload.company.name or "").strip():
        raise ValidationFailed("Company name is required")
    if not payload.warehouses:
        raise ValidationFailed("At least one warehouse is required")
    unnamed = [i for i, wh in enumerate(payload.warehouses) if not (wh.name or "").strip()]
    if unnamed:
        raise ValidationFailed("Every warehouse needs a name", details={"indexes": unnamed})
    if payload.company.dead_days <= payload.company.at_risk_days:
        raise ValidationFailed("Dead-stock threshold must exceed the at-risk threshold")

    if payload.categories is None:
        raise ValidationFailed("Categories must be provided as an array")
    names = [c.name.strip().lower() for c in payload.categories]
    if any(not n for n in names):
        raise ValidationFailed("Category name is required")
    if len(set(names)) != len(names):
        raise ValidationFailed("Duplicate category names")

    if not authenticated:
        admin = payload.admin
        if admin is None or not all((admin.name, admin.email, admin.password)):
            raise ValidationFailed("Admin name, email and password are required")


# ─── Workflow ──────────────────────────────────────────────────────────────


async def _resolve_user(db: AsyncSession, payload: OnboardingRequest, caller_id: uuid.UUID | None) -> User:
    if caller_id is not None:
        user = await db.get(User, caller_id)
        if user is None:
            raise NotFound("User not found")
        if user.company_id is not None:
            raise ValidationFailed("User has already completed onboarding")
        return user

    email = payload.admin.email.strip().lower()
    existing = await db.execute(select(User.user_id).where(func.lower(User.email) == email))
    if existing.first() is not None:
        raise Conflict("An account with this email already exists")

    user = User(
        email=email,
        name=payload.admin.name.strip(),
        password_hash=hash_password(payload.admin.password),
        role=SUPER_ADMIN,
        email_verified=False,
    )
    db.add(user)
    await db.flush()
    return user


async def _company_member_ids(db: AsyncSession, company_id: uuid.UUID) -> set[uuid.UUID]:
    result = await db.execute(select(User.user_id).where(User.company_id == company_id))
    return set(result.scalars().all())


def _manager_id(item: WarehousePayload, default_id: uuid.UUID, members: set[uuid.UUID]) -> uuid.UUID:
    if item.manager_id is None:
        return default_id
    manager_id = parse_uuid(item.manager_id, "Invalid warehouse manager")
    if manager_id not in members:
        raise ValidationFailed("Invalid warehouse manager", details={"warehouse": item.name})
    return manager_id


def _warehouse_from_payload(item: WarehousePayload, company_id: uuid.UUID, code: str, manager_id: uuid.UUID) -> Warehouse:
    loc = item.location
    return Warehouse(
        company_id=company_id,
        code=code,
        name=item.name.strip(),
        street=(loc.address or loc.street or "").strip(),
        city=loc.city.strip(),
        state=loc.state.strip(),
        pin=(loc.pincode or loc.pin or "").strip(),
        country=loc.country or "India",
        manager_id=manager_id,
        capacity=item.capacity or DEFAULT_CAPACITY,
    )


async def complete_onboarding(
    db: AsyncSession,
    payload: OnboardingRequest,
    caller_id: uuid.UUID | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> OnboardingResult:
    """
    Run onboarding for an authenticated caller (caller_id) or a new admin.

    Warehouse codes continue from the highest code in the system, in the
    order the warehouses were given.
    """
    validate_request(payload, authenticated=caller_id is not None)

    async with atomic(db, "Failed to complete onboarding"):
        user = await _resolve_user(db, payload, caller_id)

        details = payload.company
        company = Company(
            name=details.name.strip(),
            industry_type=details.industry_type or "Other",
            currency=details.currency or "USD",
            concerns=list(details.concerns),
            at_risk_days=details.at_risk_days,
            dead_days=details.dead_days,
        )
        db.add(company)
        await db.flush()

        user.company_id = company.company_id
        user.role = SUPER_ADMIN
        await db.flush()
        members = await _company_member_ids(db, company.company_id)

        codes = await allocate_warehouse_codes(db, len(payload.warehouses))
        warehouses = [
            _warehouse_from_payload(item, company.company_id, code, _manager_id(item, user.user_id, members))
            for item, code in zip(payload.warehouses, codes)
        ]
        db.add_all(warehouses)

        categories = [
            ProductCategory(
                company_id=company.company_id,
                name=item.name.strip(),
                aging_concern=item.aging_concern,
                description=item.description,
            )
            for item in payload.categories
        ]
        db.add_all(categories)
        await db.flush()

        db.add_all([UserWarehouse(user_id=user.user_id, warehouse_id=w.warehouse_id) for w in warehouses])

        record_audit(
            db,
            "company_onboarded",
            "company",
            company.company_id,
            company_id=company.company_id,
            user_id=user.user_id,
            details={"warehouses": codes, "categories": len(categories)},
            ip_address=ip_address,
            user_agent=user_agent,
        )

    logger.info(
        "onboarding.completed",
        company_id=str(company.company_id),
        user_id=str(user.user_id),
        warehouse_codes=codes,
        category_count=len(categories),
    )
    return OnboardingResult(user=user, company=company, warehouses=warehouses, categories=categories)
