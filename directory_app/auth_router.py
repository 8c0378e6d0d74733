import hmac
from datetime import UTC, datetime, timedelta

import jwt
import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from directory_app.config import settings
from directory_app.exceptions import UnauthorizedError

logger = structlog.get_logger()

router = APIRouter()


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def issue_token(subject: str) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {"sub": subject, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest) -> TokenResponse:
    username_ok = hmac.compare_digest(data.username.encode(), settings.auth_username.encode())
    password_ok = hmac.compare_digest(data.password.encode(), settings.auth_password.encode())
    if not (username_ok and password_ok):
        logger.warning("login_failed", username=data.username)
        raise UnauthorizedError("Invalid credentials")

    return TokenResponse(access_token=issue_token(data.username))
