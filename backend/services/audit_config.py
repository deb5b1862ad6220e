# services/audit_config.py
# 감사(audit) 엔진 설정 - 키워드 목록/가중치/임계값/오라클 설정을 하나의 객체로 묶어 주입한다.
import os
import logging
from datetime import timedelta, timezone
from typing import Dict, List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# 히브리어 키워드: 회의/약속/시간 표현 + 진료 예약 관련 단어
HEBREW_KEYWORDS = [
    "פגישה", "מפגש", "פגישת", "נפגש", "להיפגש", "נפגשים", "ניפגש",
    "מינוי", "תור", "זמן", "מחר", "היום",
    "שעה", "בוקר", "צהריים", "אחר הצהריים", "ערב",
    "ראשון", "שני", "שלישי", "רביעי", "חמישי", "שישי", "שבת",
    "ביום", "תאריך", "מועד", "נקבע", "קובעים", "לקבוע", "לתאם",
    "טיפול", "אוסתאופתיה", "אוסתאופטיה", "רופא", "דוקטור", "קליניקה", "בדיקה",
]

ENGLISH_KEYWORDS = [
    "meeting", "meet", "appointment", "schedule", "planned",
    "today", "tomorrow", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "morning", "afternoon", "evening", "night", "am", "pm",
    "time", "date", "when", "at", "on", "call",
    "visit", "doctor", "clinic", "treatment",
]

# 신호별 (단위 가중치, 상한)
DEFAULT_WEIGHTS: Dict[str, Tuple[float, float]] = {
    "keyword": (0.3, 0.6),
    "date": (0.2, 0.4),
    "time": (0.15, 0.3),
    "name": (0.1, 0.2),
}


class DetectionConfig(BaseModel):
    """
    탐지/매칭 파이프라인 전체 설정.

    모듈 전역 키워드 목록 대신 이 객체를 생성 시점에 각 컴포넌트로 넘긴다.
    """

    hebrew_keywords: List[str] = Field(default_factory=lambda: list(HEBREW_KEYWORDS))
    english_keywords: List[str] = Field(default_factory=lambda: list(ENGLISH_KEYWORDS))
    weights: Dict[str, Tuple[float, float]] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))

    # 이 값 미만의 후보는 오라클에 보내기 전에 버린다(정밀도/재현율 조절의 핵심 손잡이)
    min_confidence: float = 0.3
    # 오라클 비활성 시 폴백 판정의 유효 기준
    fallback_threshold: float = 0.3
    # Missing 판정 임계값(오라클 사용 / 휴리스틱 단독)
    missing_threshold_oracle: float = 0.6
    missing_threshold_heuristic: float = 0.4
    # 오라클 사용 시 이 신뢰도 이하이거나 무효 판정이면 매칭 전에 제외
    oracle_accept_confidence: int = 50

    context_window_seconds: int = 2 * 60 * 60
    context_max_messages: int = 8
    buffer_size_per_chat: int = 200

    excerpt_cap: int = 3
    excerpt_length: int = 50

    oracle_api_key: str = ""
    oracle_base: str = "https://api.openai.com/v1"
    oracle_model: str = "gpt-4o-mini"
    oracle_timeout: float = 30.0
    oracle_max_concurrency: int = 4

    utc_offset_hours: float = 2.0

    @property
    def oracle_enabled(self) -> bool:
        return bool(self.oracle_api_key.strip())

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))


def _split_env_list(name: str) -> Optional[List[str]]:
    raw = os.getenv(name, "")
    items = [s.strip() for s in raw.split(",") if s.strip()]
    return items or None


def load_config(**overrides) -> DetectionConfig:
    """
    환경 변수(.env 포함)에서 DetectionConfig를 만든다.

    ################################################
    # OPENAI_API_KEY : 오라클 인증키(없으면 오라클 비활성) #
    # OPENAI_BASE : 오라클 엔드포인트 기본 URL           #
    # OPENAI_MODEL : 사용할 모델 이름                  #
    # AUDIT_* : 임계값/동시성/키워드 목록 조정           #
    ################################################

    :param overrides: 환경 값보다 우선 적용할 필드
    :type overrides: Any
    :return: 설정 객체
    :rtype: DetectionConfig
    """

    load_dotenv()

    data = {
        "oracle_api_key": os.getenv("OPENAI_API_KEY", ""),
        "oracle_base": os.getenv("OPENAI_BASE", "https://api.openai.com/v1"),
        "oracle_model": os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        "oracle_timeout": float(os.getenv("AUDIT_ORACLE_TIMEOUT", "30")),
        "oracle_max_concurrency": int(os.getenv("AUDIT_ORACLE_MAX_CONCURRENCY", "4")),
        "min_confidence": float(os.getenv("AUDIT_MIN_CONFIDENCE", "0.3")),
        "missing_threshold_oracle": float(os.getenv("AUDIT_MISSING_THRESHOLD_ORACLE", "0.6")),
        "missing_threshold_heuristic": float(os.getenv("AUDIT_MISSING_THRESHOLD_HEURISTIC", "0.4")),
        "utc_offset_hours": float(os.getenv("AUDIT_UTC_OFFSET_HOURS", "2")),
    }
    he = _split_env_list("AUDIT_KEYWORDS_HE")
    en = _split_env_list("AUDIT_KEYWORDS_EN")
    if he:
        data["hebrew_keywords"] = he
    if en:
        data["english_keywords"] = en
    data.update(overrides)

    cfg = DetectionConfig(**data)
    # 민감정보 마스킹 후 로딩 결과 기록
    logger.info(
        "[AUDIT] config loaded: oracle=%s model=%s min_conf=%.2f keywords=%d/%d",
        cfg.oracle_enabled, cfg.oracle_model, cfg.min_confidence,
        len(cfg.hebrew_keywords), len(cfg.english_keywords),
    )
    return cfg
