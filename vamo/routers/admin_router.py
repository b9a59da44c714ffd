"""
관리자 API 라우터

- GET /admin/redemptions/pending: 처리 대기 중인 교환 요청
- POST /admin/redemptions/{redemption_id}/status: 교환 요청 fulfilled/failed 처리
- GET /admin/integrity/{user_id}: 사용자 잔액 정합성 검증

권한: profiles.role == "admin"
"""

from typing import Callable, List

from dependency_injector.wiring import inject, Provider
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from vamo.containers import Container
from vamo.core.auth_middleware import require_admin
from vamo.database.session import get_db
from vamo.schemas.profile import Profile
from vamo.schemas.rewards import (
    IntegrityCheckResponse,
    RedemptionSchema,
    RedemptionStatusUpdateRequest,
)
from vamo.services.redemption_service import RedemptionService
from vamo.services.reward_ledger_service import RewardLedgerService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/redemptions/pending", response_model=List[RedemptionSchema])
@inject
def get_pending_redemptions(
    limit: int = Query(100, ge=1, le=500, description="최대 건수"),
    _admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RedemptionService] = Depends(
        Provider[Container.services.redemption_service]
    ),
) -> List[RedemptionSchema]:
    return service_factory(db=db).list_pending(limit=limit)


@router.post("/redemptions/{redemption_id}/status", response_model=RedemptionSchema)
@inject
def update_redemption_status(
    request: RedemptionStatusUpdateRequest,
    redemption_id: str = Path(..., description="교환 요청 ID"),
    _admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RedemptionService] = Depends(
        Provider[Container.services.redemption_service]
    ),
) -> RedemptionSchema:
    return service_factory(db=db).update_status(redemption_id, request.status)


@router.get("/integrity/{user_id}", response_model=IntegrityCheckResponse)
@inject
def verify_user_integrity(
    user_id: str = Path(..., description="사용자 ID"),
    _admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RewardLedgerService] = Depends(
        Provider[Container.services.reward_ledger_service]
    ),
) -> IntegrityCheckResponse:
    return service_factory(db=db).verify_integrity(user_id)
