from typing import Optional

from jose import jwt, JWTError
from pydantic import BaseModel, ValidationError

from vamo.config import Settings
from vamo.core.exceptions import AuthenticationError


class TokenPayload(BaseModel):
    """Supabase access token 클레임 중 사용하는 항목"""

    sub: str  # auth.users.id
    email: Optional[str] = None
    role: Optional[str] = None


def decode_access_token(token: str, settings: Settings) -> TokenPayload:
    """Supabase가 발급한 JWT를 검증하고 클레임을 반환합니다."""
    if not settings.SUPABASE_JWT_SECRET:
        raise AuthenticationError("Authentication is not configured")

    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
        return TokenPayload.model_validate(payload)
    except (JWTError, ValidationError):
        raise AuthenticationError("Invalid or expired token")
