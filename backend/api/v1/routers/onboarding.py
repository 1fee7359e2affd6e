"""
Onboarding Router: Company setup for a new tenant.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import client_ip, get_current_account, get_db, get_optional_user, set_auth_cookie
from core.errors import Unauthenticated, parse_uuid
from core.security import token_for_user
from db.models import User
from inventory.onboarding import OnboardingRequest, complete_onboarding

router = APIRouter(prefix="/api/v1/onboarding", tags=["onboarding"])


@router.post("", status_code=201)
async def onboard(
    body: OnboardingRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    claims: dict | None = Depends(get_optional_user),
):
    """Create the company, its warehouses and categories, and bind the caller as admin."""
    caller_id = None
    if claims and claims.get("user_id"):
        caller_id = parse_uuid(claims["user_id"], "Invalid or expired token", Unauthenticated)

    result = await complete_onboarding(
        db,
        body,
        caller_id=caller_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    token = token_for_user(result.user)
    set_auth_cookie(response, token)
    return {
        "success": True,
        "message": "Onboarding completed successfully",
        "userId": str(result.user.user_id),
        "companyId": str(result.company.company_id),
        "warehouseIds": [str(w.warehouse_id) for w in result.warehouses],
        "warehouseCodes": [w.code for w in result.warehouses],
        "categoryIds": [str(c.category_id) for c in result.categories],
        "token": token,
    }


@router.get("/status")
async def onboarding_status(user: User = Depends(get_current_account)):
    return {
        "success": True,
        "needsOnboarding": user.company_id is None,
        "companyId": str(user.company_id) if user.company_id else None,
    }
