from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from vamo.config import settings
from vamo.core.exceptions import AuthenticationError, AuthorizationError
from vamo.core.security import decode_access_token
from vamo.database.session import get_db
from vamo.repositories.profile_repository import ProfileRepository
from vamo.schemas.profile import Profile

# JWT Bearer 토큰 스킴
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Profile:
    """필수 사용자 인증 - 유효한 Supabase 토큰과 프로필이 필요함"""
    if not credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials, settings)

    profile = ProfileRepository(db).get_profile(payload.sub)
    if profile is None:
        raise AuthenticationError("Profile not found")
    return profile


def require_admin(
    current_user: Profile = Depends(get_current_user),
) -> Profile:
    """관리자 권한이 필요한 엔드포인트용 의존성"""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
