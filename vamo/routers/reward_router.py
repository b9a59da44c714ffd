"""
리워드 지급 API 라우터

- POST /rewards: 이벤트 한 건에 대한 파인애플 지급 (멱등)
- POST /rewards/chat: 채팅 메시지 한 건에 대한 일괄 지급

인증 및 권한:
- 모든 엔드포인트는 Supabase Bearer 토큰 인증 필요
"""

import logging
from typing import Callable

from dependency_injector.wiring import inject, Provider
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vamo.containers import Container
from vamo.core.auth_middleware import get_current_user
from vamo.database.session import get_db
from vamo.schemas.profile import Profile
from vamo.schemas.rewards import (
    ChatRewardRequest,
    ChatRewardResult,
    RewardGrantRequest,
    RewardGrantResponse,
)
from vamo.services.reward_ledger_service import RewardLedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rewards", tags=["rewards"])


@router.post("", response_model=RewardGrantResponse)
@inject
def grant_reward(
    request: RewardGrantRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RewardLedgerService] = Depends(
        Provider[Container.services.reward_ledger_service]
    ),
) -> RewardGrantResponse:
    """
    파인애플 지급

    HTTP Status:
        200: 지급 또는 중복/레이트 리밋으로 0 지급 (rewarded=false)
        400: 입력 검증 실패
        401: 인증 실패
        403: userId가 인증 사용자와 다름
        429: 레이트 리밋 (reject 정책일 때만)
        500: 내부 서버 오류
    """
    service = service_factory(db=db)
    result = service.grant_reward(current_user.id, request)
    return RewardGrantResponse.from_result(result)


@router.post("/chat", response_model=ChatRewardResult)
@inject
def grant_chat_rewards(
    request: ChatRewardRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RewardLedgerService] = Depends(
        Provider[Container.services.reward_ledger_service]
    ),
) -> ChatRewardResult:
    """채팅 메시지 기반 일괄 지급 - messageId 단위로 멱등"""
    service = service_factory(db=db)
    return service.grant_chat_rewards(current_user.id, request)
