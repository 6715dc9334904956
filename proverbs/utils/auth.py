import hmac
from datetime import datetime, timedelta, timezone

from fastapi import Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from ..core.config import Settings, get_settings

# auto_error off: a missing credential must not pre-empt input validation
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth", auto_error=False)

def get_app_settings(request: Request) -> Settings:
    """The settings the running app was created with."""
    return request.app.state.settings

def verify_pin(pin: str, settings: Settings = None) -> bool:
    settings = settings or get_settings()
    return hmac.compare_digest(pin.encode(), settings.ACCESS_PIN.encode())

def create_access_token(data: dict, expires_delta: timedelta, settings: Settings = None):
    settings = settings or get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm="HS256")
    return encoded_jwt

def verify_token(token: str, settings: Settings = None) -> bool:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except JWTError:
        return False
    return bool(payload.get("authenticated"))
