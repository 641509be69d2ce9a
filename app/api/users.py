"""User profile API: display details and currency preference."""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import CamelModel, get_current_user, ok
from app.models.base import get_db
from app.models.enums import Currency
from app.models.user import User
from app.utils.helpers import iso
from app.utils.logger import log

router = APIRouter(prefix="/users", tags=["users"])


class ProfileUpdate(CamelModel):
    display_name: Optional[str] = None
    business_name: Optional[str] = None
    currency: Optional[Currency] = None


def _user_out(u: User) -> dict:
    return {
        "id": u.id,
        "email": u.email,
        "displayName": u.display_name,
        "businessName": u.business_name,
        "currency": u.currency,
        "subscription": {"type": u.subscription_type.value},
        "createdAt": iso(u.created_at),
    }


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return ok(_user_out(user))


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Update profile fields; currency becomes the default for new records and dashboards."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if "currency" in changes:
        changes["currency"] = changes["currency"].value
    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    log.info(f"Profile updated for user {user.id}: {', '.join(changes) or 'no changes'}")
    return ok(_user_out(user), "Profile updated successfully")
