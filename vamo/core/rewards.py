"""
파인애플 지급 규칙

이벤트 타입별 지급량 테이블과 멱등성 키 생성 규칙을 한 곳에 모읍니다.
모든 함수는 순수 함수이며 DB에 접근하지 않습니다.
"""

from typing import Dict, List, Optional

REWARD_AMOUNTS: Dict[str, int] = {
    "chat_prompt": 5,
    "chat_feature": 1,
    "chat_customer": 1,
    "chat_revenue": 1,
    "link_linkedin": 5,
    "link_github": 5,
    "link_website": 3,
    "feature_shipped": 3,
    "customer_added": 5,
    "revenue_logged": 10,
}

DEFAULT_REWARD_AMOUNT = 5
REDEMPTION_EVENT_TYPE = "reward_redeemed"
REWARD_EARNED_EVENT_TYPE = "reward_earned"
CHAT_PROMPT_EVENT_TYPE = "chat_prompt"

# 활동 기록에 남기는 채팅 메시지 미리보기 길이
MESSAGE_PREVIEW_LENGTH = 100

# 채팅 의도 -> 트랙션 이벤트
TRACTION_INTENTS: Dict[str, str] = {
    "feature": "feature_shipped",
    "customer": "customer_added",
    "revenue": "revenue_logged",
}

_NO_PROJECT = "-"


def get_reward_amount(event_type: str, default: int = DEFAULT_REWARD_AMOUNT) -> int:
    """이벤트 타입의 지급량 (테이블에 없으면 default)"""
    return REWARD_AMOUNTS.get(event_type, default)


def build_idempotency_key(
    user_id: str,
    project_id: Optional[str],
    event_type: str,
    discriminator: str,
) -> str:
    """
    멱등성 키 생성: "{user_id}:{project_id}:{event_type}:{discriminator}"

    discriminator는 반복 발생하는 행동이면 메시지 ID처럼 행동마다 다른 값,
    1회성 행동이면 필드명처럼 고정 값을 넘깁니다.
    시간 기반 값으로 대체하면 재시도마다 새 키가 생겨 멱등성이 깨지므로 허용하지 않습니다.
    """
    if not discriminator or not str(discriminator).strip():
        raise ValueError("discriminator is required for an idempotency key")
    if not user_id or not event_type:
        raise ValueError("user_id and event_type are required for an idempotency key")

    project_part = project_id or _NO_PROJECT
    return f"{user_id}:{project_part}:{event_type}:{str(discriminator).strip()}"


def build_redemption_key(redemption_id: str) -> str:
    """교환 차감 원장의 멱등성 키 - 교환 레코드 생성 이후에만 만들 수 있음"""
    return f"redeem-{redemption_id}"


def chat_reward_events(intent: Optional[str], has_traction_signal: bool) -> List[str]:
    """채팅 메시지 한 건으로 지급할 이벤트 타입 목록"""
    events = [CHAT_PROMPT_EVENT_TYPE]
    if intent in TRACTION_INTENTS:
        events.append(f"chat_{intent}")
        if has_traction_signal:
            events.append(TRACTION_INTENTS[intent])
    return events
