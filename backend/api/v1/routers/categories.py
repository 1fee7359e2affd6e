"""
Categories Router: Per-company product categories.
"""

from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_company_account, get_db
from api.v1.schemas import CategoryResponse
from core.errors import ValidationFailed
from db.models import ProductCategory, User
from db.transactions import atomic

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    aging_concern: Literal["slow", "moderate", "fast", "expiry"] = "moderate"
    description: str | None = None


@router.get("")
async def list_categories(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    result = await db.execute(
        select(ProductCategory)
        .where(ProductCategory.company_id == user.company_id, ProductCategory.is_active.is_(True))
        .order_by(ProductCategory.name)
    )
    return {"success": True, "categories": [CategoryResponse.model_validate(c) for c in result.scalars().all()]}


@router.post("", status_code=201)
async def create_category(
    body: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_company_account),
):
    name = body.name.strip()
    existing = await db.execute(
        select(ProductCategory.category_id).where(
            ProductCategory.company_id == user.company_id,
            func.lower(ProductCategory.name) == name.lower(),
        )
    )
    if existing.first() is not None:
        raise ValidationFailed("A category with this name already exists")

    async with atomic(db, "Failed to create category"):
        category = ProductCategory(
            company_id=user.company_id,
            name=name,
            aging_concern=body.aging_concern,
            description=body.description,
        )
        db.add(category)
    return {"success": True, "category": CategoryResponse.model_validate(category)}
