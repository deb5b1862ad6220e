# schemas/audit_schema.py
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Message(BaseModel):
    """
    채팅 메시지 한 건. 외부 메시지 소스가 소유하며 엔진은 읽기만 한다.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    timestamp: int
    chat_id: str = Field(alias="chatId")
    sender_id: str = Field("", alias="senderId")
    sender_name: str = Field("", alias="senderName")
    text: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v):
        return str(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _ts_as_int(cls, v):
        return int(float(v))


class SemanticVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid_meeting: bool = False
    confidence: int = 0
    date_time: Optional[str] = None
    location: Optional[str] = None
    participants: Optional[List[str]] = None
    meeting_type: Optional[str] = None
    reasoning: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, v):
        try:
            n = int(round(float(v)))
        except (TypeError, ValueError, OverflowError):
            return 0
        return max(0, min(100, n))


class Candidate(BaseModel):
    """
    메시지에서 도출된 '회의가 언급되었다'는 가설.
    추출 시 한 번 생성되고, 판정(verdict)/날짜 해석으로 최대 한 번 보강된 사본이 매처로 넘어간다.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    source_message_id: str
    chat_id: str
    sender_name: str = ""
    raw_text: str
    timestamp: int = 0
    keywords: List[str] = Field(default_factory=list)
    candidate_date_tokens: List[str] = Field(default_factory=list)
    candidate_time_tokens: List[str] = Field(default_factory=list)
    candidate_names: List[str] = Field(default_factory=list)
    heuristic_confidence: float = 0.0
    semantic_verdict: Optional[SemanticVerdict] = None
    resolved_dates: List[date] = Field(default_factory=list)

    @field_validator("heuristic_confidence", mode="before")
    @classmethod
    def _clamp_unit(cls, v):
        return max(0.0, min(1.0, float(v or 0.0)))

    @property
    def effective_confidence(self) -> float:
        # 판정이 있으면 판정 신뢰도를 그대로 대체 사용(평균 내지 않음)
        if self.semantic_verdict is not None:
            return max(0.0, min(1.0, self.semantic_verdict.confidence / 100))
        return self.heuristic_confidence


class EventTime(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date_time: Optional[str] = Field(None, alias="dateTime")
    date: Optional[str] = None
    time_zone: Optional[str] = Field(None, alias="timeZone")


class CalendarEvent(BaseModel):
    """
    Google Calendar 이벤트 형태. start/end가 없거나 깨진 이벤트도 받아 두고 매칭 단계에서 건너뛴다.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    summary: str = "(no title)"
    description: Optional[str] = None
    start: Optional[EventTime] = None
    end: Optional[EventTime] = None
    attendees: Optional[List[Dict[str, Any]]] = None
    location: Optional[str] = None

    @field_validator("summary", mode="before")
    @classmethod
    def _default_summary(cls, v):
        return v or "(no title)"


class AuditStatus(str, Enum):
    CONFIRMED = "confirmed"
    CONFLICT = "conflict"
    MISSING = "missing"


class AuditRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidate_id: str
    matched_event_id: Optional[str] = None
    status: AuditStatus
    detail: str


class AuditExcerpt(BaseModel):
    candidate_id: str
    sender_name: str
    excerpt: str
    detail: str
    timestamp: int


class AuditSummary(BaseModel):
    total_messages: int = 0
    candidates: int = 0
    counts: Dict[AuditStatus, int] = Field(
        default_factory=lambda: {s: 0 for s in AuditStatus}
    )
    conflicts: List[AuditExcerpt] = Field(default_factory=list)
    missing: List[AuditExcerpt] = Field(default_factory=list)
    more_conflicts: int = 0
    more_missing: int = 0
    all_good: bool = True


class AuditResult(BaseModel):
    records: List[AuditRecord] = Field(default_factory=list)
    summary: AuditSummary = Field(default_factory=AuditSummary)
    candidates: List[Candidate] = Field(default_factory=list)
    calendar_days: List[date] = Field(default_factory=list)


# HTTP IO 모델
class AuditIn(BaseModel):
    """
    /audits 엔드포인트 입력 스키마.
    events가 없으면 access_token으로 Google Calendar에서 필요한 날짜만 조회한다.
    """
    messages: List[Message]
    events: Optional[List[Dict[str, Any]]] = None
    access_token: Optional[str] = None
    calendar_id: str = "primary"
    now: Optional[datetime] = None


class AuditOut(BaseModel):
    run_id: int
    result: AuditResult


class AuditRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    run_id: int
    candidate_id: str
    source_message_id: str
    chat_id: str
    sender_name: Optional[str]
    excerpt: str
    matched_event_id: Optional[str]
    status: AuditStatus
    detail: str
    effective_confidence: float
    message_timestamp: int
    created_at: datetime


class AuditRunInfoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    total_messages: int
    candidates: int
    confirmed: int
    conflicts: int
    missing: int
    created_at: datetime


class AuditRunOut(AuditRunInfoOut):
    records: List[AuditRecordOut] = Field(default_factory=list)
