import logging
from typing import Callable

from dependency_injector.wiring import inject, Provider
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vamo.containers import Container
from vamo.core.auth_middleware import get_current_user
from vamo.database.session import get_db
from vamo.schemas.profile import Profile
from vamo.schemas.rewards import RedeemRequest, RedeemResponse
from vamo.services.redemption_service import RedemptionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["redeem"])


@router.post("/redeem", response_model=RedeemResponse)
@inject
def redeem(
    request: RedeemRequest,
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RedemptionService] = Depends(
        Provider[Container.services.redemption_service]
    ),
) -> RedeemResponse:
    """
    파인애플 교환 요청 - pending 상태로 생성되며 지급은 관리자가 처리

    HTTP Status:
        200: 교환 요청 생성
        400: 최소 수량 미달(VALIDATION_ERROR) 또는 잔액 부족(INSUFFICIENT_BALANCE)
        401: 인증 실패
        500: 내부 서버 오류
    """
    service = service_factory(db=db)
    return service.redeem(current_user.id, request.amount)
