# services/reconciliation.py
# 후보 <-> 캘린더 이벤트 대조: Confirmed / Conflict / Missing / (기록 없음)
import logging
from datetime import date
from typing import List, Optional, Sequence, Tuple

from schemas.audit_schema import AuditRecord, AuditStatus, CalendarEvent, Candidate
from services.audit_time import event_start, parse_oracle_datetime, times_match

logger = logging.getLogger(__name__)

DETAIL_TIME_MATCH = "date and time match"
DETAIL_TIME_UNCLEAR = "date match, time unclear"


def authoritative_dates(candidate: Candidate) -> List[date]:
    """
    후보의 기준 날짜. 오라클 date_time의 날짜가 파싱되면 그것 하나, 아니면 휴리스틱 해석 결과.
    """
    verdict = candidate.semantic_verdict
    if verdict is not None and verdict.date_time:
        day, _ = parse_oracle_datetime(verdict.date_time)
        if day is not None:
            return [day]
    return list(candidate.resolved_dates)


def authoritative_time(candidate: Candidate) -> Tuple[Optional[str], bool]:
    """
    후보의 기준 시각 토큰과 24시간제 확정 여부.
    오라클 date_time에 시각이 있으면 그것(24시간제), 없으면 첫 번째 휴리스틱 시간 토큰.
    """
    verdict = candidate.semantic_verdict
    if verdict is not None and verdict.date_time:
        _, hhmm = parse_oracle_datetime(verdict.date_time)
        if hhmm:
            return hhmm, True
    if candidate.candidate_time_tokens:
        return candidate.candidate_time_tokens[0], False
    return None, False


class ReconciliationMatcher:
    """
    후보 한 건을 조회된 캘린더 이벤트들과 대조해 감사 기록을 최대 하나 만든다.

    - 같은 날 이벤트가 있고 시각이 맞으면 Confirmed
    - 같은 날이지만 시각이 다르면 Conflict(해당 날의 모든 불일치 이벤트를 detail에 나열)
    - 양쪽 중 하나라도 비교할 시각이 없으면 Confirmed(시간 불명)
    - 같은 날 이벤트가 없고 유효 신뢰도가 missing_threshold를 넘으면 Missing
    - 그 외에는 기록을 만들지 않는다(알림 스팸 방지)

    :param missing_threshold: Missing 판정 임계값(0~1)
    :type missing_threshold: float
    """

    def __init__(self, missing_threshold: float = 0.4):
        self.missing_threshold = missing_threshold

    def match(self, candidate: Candidate, events: Sequence[CalendarEvent]) -> Optional[AuditRecord]:
        days = set(authoritative_dates(candidate))
        token, is_24h = authoritative_time(candidate)

        conflicts: List[Tuple[CalendarEvent, Tuple[int, int]]] = []
        for ev in events:
            start = event_start(ev)
            if start is None:
                logger.debug("[AUDIT] skip event without usable start: %s", ev.id)
                continue
            ev_day, ev_time = start
            if ev_day not in days:
                continue

            if token and ev_time:
                if times_match(token, ev_time, is_24h):
                    return AuditRecord(
                        candidate_id=candidate.id,
                        matched_event_id=ev.id,
                        status=AuditStatus.CONFIRMED,
                        detail=DETAIL_TIME_MATCH,
                    )
                conflicts.append((ev, ev_time))
            else:
                return AuditRecord(
                    candidate_id=candidate.id,
                    matched_event_id=ev.id,
                    status=AuditStatus.CONFIRMED,
                    detail=DETAIL_TIME_UNCLEAR,
                )

        if conflicts:
            names = ", ".join(f"{ev.summary} ({h:02d}:{m:02d})" for ev, (h, m) in conflicts)
            return AuditRecord(
                candidate_id=candidate.id,
                matched_event_id=conflicts[0][0].id,
                status=AuditStatus.CONFLICT,
                detail=f"same day, different time ({token}) - conflicts with: {names}",
            )

        confidence = candidate.effective_confidence
        if confidence > self.missing_threshold:
            when = ", ".join(d.isoformat() for d in sorted(days)) or "any checked day"
            return AuditRecord(
                candidate_id=candidate.id,
                status=AuditStatus.MISSING,
                detail=f"no calendar event on {when} (confidence {round(confidence * 100)}%)",
            )
        return None
