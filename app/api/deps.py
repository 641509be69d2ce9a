"""Shared API dependencies: current user resolution and response envelope."""
from datetime import datetime
from typing import Any, List, Optional

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from app.models.base import get_db
from app.models.user import User
from app.services.validation_service import to_naive_utc


class CamelModel(BaseModel):
    """Request body accepting camelCase (as sent by the mobile client) or snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*")
    @classmethod
    def _naive_utc(cls, v):
        # aware → naive UTC, the form every stored datetime takes
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v


def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    """
    Dependency: the authenticated user.

    Authentication happens upstream; the gateway forwards the resolved user
    id in the X-User-Id header.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    user = db.query(User).filter(User.id == x_user_id, User.is_active == True).first()  # noqa: E712
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    result = {"success": True, "data": data}
    if message:
        result["message"] = message
    return result


def check_choice(value: Optional[str], choices: List[str], name: str) -> Optional[str]:
    """Field validator helper for closed string enumerations."""
    if value is not None and value not in choices:
        raise ValueError(f"{name} must be one of: {', '.join(choices)}")
    return value
