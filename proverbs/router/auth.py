from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from ..core.config import Settings
from ..utils.auth import create_access_token, get_app_settings, verify_pin

router = APIRouter()


class PinLoginInput(BaseModel):
    pin: Optional[str] = None


@router.post("")
async def login_with_pin(login_input: PinLoginInput, settings: Settings = Depends(get_app_settings)):
    pin = (login_input.pin or "").strip()
    if not pin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PIN is required")
    if not verify_pin(pin, settings):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid PIN",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"authenticated": True},
        expires_delta=access_token_expires,
        settings=settings,
    )
    return {
        "success": True,
        "token": access_token,
        "token_type": "bearer",
        # milliseconds, the unit browser clients add to Date.now()
        "expires_in": int(access_token_expires.total_seconds() * 1000),
    }
