# Google Calendar API 읽기 래퍼 모듈
# - 엔진이 요청한 날짜들만 좁게 조회(연속된 날짜는 한 구간으로 묶음)
# - access_token 발급/갱신(OAuth)은 호출자 책임
import logging, requests
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple
from fastapi import HTTPException
from urllib.parse import quote

logger = logging.getLogger(__name__)

GCAL_BASE = "https://www.googleapis.com/calendar/v3"


def _auth_header(access_token: str) -> Dict[str, str]:
    """
    이미 발급된 access_token으로 Authorization 헤더를 만든다.

    :param access_token: Google OAuth access token
    :type access_token: str
    :return: {"Authorization": "Bearer <access_token>"} 형태의 헤더
    :rtype: Dict[str, str]
    :raises HTTPException: 401 - 토큰 없음
    """

    if not access_token:
        raise HTTPException(401, "Google access token is required")
    return {"Authorization": f"Bearer {access_token}"}


def _rfc3339(dt: datetime) -> str:
    """
    datetime을 RFC3339 UTC(Z) 문자열로 반환한다. (timeMin/timeMax 용)
    """
    return (
        dt.astimezone(timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )


# 캘린더 ID를 URL 경로 세그먼트로 안전 인코딩
def _cid(s: str) -> str:
    return quote(s, safe='@._-+%')


def _day_windows(days: Sequence[date], tz: timezone) -> List[Tuple[datetime, datetime]]:
    """
    날짜 목록을 연속 구간 [첫날 00:00, 마지막날+1 00:00)으로 묶는다.

    :param days: 조회가 필요한 날짜들(중복/순서 무관)
    :type days: Sequence[date]
    :param tz: 하루 경계를 정할 타임존
    :type tz: timezone
    :return: (time_min, time_max) 구간 리스트
    :rtype: List[Tuple[datetime, datetime]]
    """

    windows: List[Tuple[date, date]] = []
    for d in sorted(set(days)):
        if windows and d == windows[-1][1] + timedelta(days=1):
            windows[-1] = (windows[-1][0], d)
        else:
            windows.append((d, d))
    return [
        (
            datetime.combine(first, time.min, tzinfo=tz),
            datetime.combine(last + timedelta(days=1), time.min, tzinfo=tz),
        )
        for first, last in windows
    ]


def _list_events_window(
    headers: Dict[str, str],
    calendar_id: str,
    time_min: datetime,
    time_max: datetime,
) -> List[Dict[str, Any]]:
    """
    단일 캘린더의 한 구간 이벤트를 조회한다. 단일 인스턴스 전개(singleEvents) + 시작시간 정렬

    :raises HTTPException: 502 - Google API 오류
    """

    params: Dict[str, Any] = {
        "singleEvents": "true",
        "orderBy": "startTime",
        "maxResults": 2500,
        "timeMin": _rfc3339(time_min),
        "timeMax": _rfc3339(time_max),
    }
    try:
        r = requests.get(
            f"{GCAL_BASE}/calendars/{_cid(calendar_id)}/events",
            headers=headers,
            params=params,
            timeout=25,
        )
    except requests.RequestException as e:
        logger.error("[GCAL] list events request failed cid=%s | %s", calendar_id, e)
        raise HTTPException(502, "Google Calendar list failed")

    if not r.ok:
        logger.error("[GCAL] list events failed(%s) cid=%s | %s", r.status_code, calendar_id, r.text)
        raise HTTPException(502, "Google Calendar list failed")
    return r.json().get("items", [])


def gcal_list_events_for_days(
    access_token: str,
    days: Sequence[date],
    calendar_id: str = "primary",
    tz: Optional[timezone] = None,
) -> List[Dict[str, Any]]:
    """
    엔진이 요청한 날짜들의 이벤트를 모아 시작시간 순으로 반환한다.
    일부 구간이 실패해도 나머지 결과는 돌려주고, 전부 실패하면 502.

    :param access_token: Google OAuth access token
    :type access_token: str
    :param days: 조회할 날짜 목록
    :type days: Sequence[date]
    :param calendar_id: 대상 캘린더 ID (기본값 'primary')
    :type calendar_id: str
    :param tz: 하루 경계 타임존(기본 UTC)
    :type tz: Optional[timezone]
    :return: Google 이벤트 dict 리스트(취소된 이벤트 제외, id 기준 중복 제거)
    :rtype: List[Dict[str, Any]]
    :raises HTTPException: 401 - 토큰 없음, 502 - 모든 구간 조회 실패
    """

    headers = _auth_header(access_token)
    windows = _day_windows(days, tz or timezone.utc)
    logger.info("[GCAL] list for %d days in %d windows, cid=%s", len(set(days)), len(windows), calendar_id)

    seen: set = set()
    all_items: List[Dict[str, Any]] = []
    failures = 0
    for time_min, time_max in windows:
        try:
            items = _list_events_window(headers, calendar_id, time_min, time_max)
        except HTTPException:
            # 일부 구간이 실패해도 전체 실패로 보지 않음
            failures += 1
            continue
        logger.info("[GCAL] %s ~ %s -> %d items", time_min.date(), time_max.date(), len(items))
        for it in items:
            eid = it.get("id")
            if it.get("status") == "cancelled" or not eid or eid in seen:
                continue
            seen.add(eid)
            all_items.append(it)

    if windows and failures == len(windows):
        raise HTTPException(502, "Google Calendar list failed for every requested day")

    # 시작 시각 기준으로 정렬(dateTime/date 우선순위 준 키 사용)
    def _start_key(e: Dict[str, Any]):
        s = e.get("start") or {}
        return s.get("dateTime") or s.get("date") or ""

    all_items.sort(key=_start_key)
    return all_items
