# services/audit_time.py
# 시간 / 포맷 / 정규식 - 매칭 단계에서 쓰는 느슨한 시간 비교 유틸
import re
from datetime import date, datetime
from typing import FrozenSet, NamedTuple, Optional, Tuple

from schemas.audit_schema import CalendarEvent

HHMM_RE = re.compile(r"(\d{1,2}):(\d{2})")
HOUR_RE = re.compile(r"(\d{1,2})")

# 시간대 단어 -> [시작시, 끝시) 범위
DAY_PARTS = [
    ("אחר הצהריים", (12, 18)),
    ("afternoon", (12, 18)),
    ('אחה"צ', (12, 18)),
    ("אחה״צ", (12, 18)),
    ("בצהריים", (11, 15)),
    ("צהריים", (11, 15)),
    ("noon", (11, 14)),
    ("morning", (5, 12)),
    ("בבוקר", (5, 12)),
    ("בוקר", (5, 12)),
    ("evening", (17, 23)),
    ("בערב", (17, 23)),
    ("ערב", (17, 23)),
    ("night", (19, 24)),
    ("בלילה", (19, 24)),
    ("לילה", (19, 24)),
]
# 숫자와 함께 오면 오후로 읽는 히브리어 시간대
_PM_PARTS = ("בערב", "בלילה", 'אחה"צ', "אחה״צ")

_ORACLE_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S")


class TimeSpec(NamedTuple):
    hours: FrozenSet[int]
    minute: Optional[int] = None
    hour_range: Optional[Tuple[int, int]] = None


def _day_part(text: str) -> Optional[Tuple[int, int]]:
    for word, rng in DAY_PARTS:
        if word in text:
            return rng
    return None


def parse_time_token(token: str, twenty_four_hour: bool = False) -> Optional[TimeSpec]:
    """
    시간 토큰을 비교 가능한 형태로 파싱한다.

    - 'HH:MM', '3pm', 'at 3', 'ב-3', '10 בבוקר' -> 후보 시각 집합 + (선택) 분
    - 오전/오후 표시 없는 1~11시는 h 또는 h+12 둘 다 후보로 본다(구어체 "3시에 보자")
    - 'morning'/'ערב' 같은 시간대 단어 -> 시각 범위
    - twenty_four_hour=True(오라클 'HH:MM')면 후보를 하나로 고정

    :param token: 추출된 시간 토큰
    :type token: str
    :param twenty_four_hour: 24시간제로 확정된 입력 여부
    :type twenty_four_hour: bool
    :return: TimeSpec 또는 None(해석 불가)
    :rtype: Optional[TimeSpec]
    """

    t = (token or "").strip().lower()
    if not t:
        return None

    minute: Optional[int] = None
    m = HHMM_RE.search(t)
    if m:
        hour, minute = int(m.group(1)), int(m.group(2))
    else:
        m = HOUR_RE.search(t)
        if not m:
            rng = _day_part(t)
            return TimeSpec(frozenset(), None, rng) if rng else None
        hour = int(m.group(1))

    if hour > 23 or (minute is not None and minute > 59):
        return None

    if twenty_four_hour:
        return TimeSpec(frozenset({hour}), minute)

    if "pm" in t or any(p in t for p in _PM_PARTS):
        if hour < 12:
            hour += 12
        return TimeSpec(frozenset({hour}), minute)
    if "am" in t or "בבוקר" in t:
        if hour == 12:
            hour = 0
        return TimeSpec(frozenset({hour}), minute)
    if "בצהריים" in t and hour <= 5:
        return TimeSpec(frozenset({hour + 12}), minute)
    if 1 <= hour <= 11:
        return TimeSpec(frozenset({hour, hour + 12}), minute)
    return TimeSpec(frozenset({hour}), minute)


def _loose_contains(token: str, event_hhmm: str) -> bool:
    # 해석 불가 토큰용: 문자열 포함 관계로만 본다
    t = (token or "").lower()
    digits = re.sub(r"[^\d:]", "", t)
    return event_hhmm in t or bool(digits and digits in event_hhmm)


def times_match(token: str, event_time: Tuple[int, int], twenty_four_hour: bool = False) -> bool:
    """
    후보의 시간 토큰이 이벤트 시작 시각과 '대략' 맞는지 판단한다(분 단위 엄밀 비교 아님).

    :param token: 후보 시간 토큰(오라클 'HH:MM' 또는 휴리스틱 토큰)
    :type token: str
    :param event_time: 이벤트 시작 (시, 분)
    :type event_time: Tuple[int, int]
    :param twenty_four_hour: token이 24시간제로 확정되었는지
    :type twenty_four_hour: bool
    :return: 일치 여부
    :rtype: bool
    """

    ev_h, ev_m = event_time
    spec = parse_time_token(token, twenty_four_hour)
    if spec is None:
        return _loose_contains(token, f"{ev_h}:{ev_m:02d}")
    if spec.hour_range is not None:
        lo, hi = spec.hour_range
        return lo <= ev_h < hi
    if ev_h not in spec.hours:
        return False
    return spec.minute is None or spec.minute == ev_m


def event_start(event: CalendarEvent) -> Optional[Tuple[date, Optional[Tuple[int, int]]]]:
    """
    이벤트 시작의 (날짜, (시, 분) 또는 None)을 구한다. 종일 이벤트는 시각이 없다.
    시각은 이벤트에 기록된 오프셋 기준 벽시계 값을 그대로 쓴다.

    :param event: 캘린더 이벤트
    :type event: CalendarEvent
    :return: (date, time) 또는 None(start 누락/파싱 실패)
    :rtype: Optional[Tuple[date, Optional[Tuple[int, int]]]]
    """

    start = event.start
    if start is None:
        return None
    try:
        if start.date_time:
            dt = datetime.fromisoformat(start.date_time.strip().replace("Z", "+00:00"))
            return dt.date(), (dt.hour, dt.minute)
        if start.date:
            return date.fromisoformat(start.date.strip()[:10]), None
    except ValueError:
        return None
    return None


def parse_oracle_datetime(s: Optional[str]) -> Tuple[Optional[date], Optional[str]]:
    """
    오라클의 'YYYY-MM-DD HH:MM' 문자열에서 날짜와 'HH:MM' 시각을 분리한다.
    날짜만 있으면 시각은 None, 파싱이 안 되면 (None, None).
    """

    if not s or s.strip().lower() in ("null", "none"):
        return None, None
    raw = s.strip()
    for fmt in _ORACLE_FORMATS:
        try:
            dt = datetime.strptime(raw, fmt)
            return dt.date(), dt.strftime("%H:%M")
        except ValueError:
            continue
    try:
        if ":" in raw:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
            return dt.date(), dt.strftime("%H:%M")
        return date.fromisoformat(raw[:10]), None
    except ValueError:
        return None, None
