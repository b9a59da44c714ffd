from typing import Callable

from dependency_injector.wiring import inject, Provider
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from vamo.containers import Container
from vamo.core.auth_middleware import get_current_user
from vamo.database.session import get_db
from vamo.schemas.profile import Profile
from vamo.schemas.rewards import IntegrityCheckResponse, WalletResponse
from vamo.services.reward_ledger_service import RewardLedgerService

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("", response_model=WalletResponse)
@inject
def get_my_wallet(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RewardLedgerService] = Depends(
        Provider[Container.services.reward_ledger_service]
    ),
) -> WalletResponse:
    """내 잔액, 최근 리워드 내역, 교환 내역"""
    return service_factory(db=db).get_wallet(current_user.id)


@router.get("/integrity", response_model=IntegrityCheckResponse)
@inject
def verify_my_integrity(
    current_user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    service_factory: Callable[..., RewardLedgerService] = Depends(
        Provider[Container.services.reward_ledger_service]
    ),
) -> IntegrityCheckResponse:
    """내 캐시 잔액과 원장 합계 비교"""
    return service_factory(db=db).verify_integrity(current_user.id)
