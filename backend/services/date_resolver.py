# services/date_resolver.py
# 날짜 토큰(상대/요일/숫자) -> 실제 달력 날짜
import re
import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# 월=0 ... 일=6 (date.weekday() 기준)
WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
    # 히브리어 요일: 일요일이 '첫째 날(ראשון)'
    "ראשון": 6, "שני": 0, "שלישי": 1, "רביעי": 2, "חמישי": 3, "שישי": 4, "שבת": 5,
}

RELATIVE_DAYS = {
    "today": 0, "היום": 0,
    "tomorrow": 1, "מחר": 1,
    "day after tomorrow": 2, "מחרתיים": 2,
}

NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{2,4})$")


def next_weekday(today: date, weekday: int) -> date:
    """
    오늘 이후 가장 가까운 해당 요일. 오늘이 그 요일이면 7일 뒤(오늘은 '다음'이 아님).
    """
    ahead = (weekday - today.weekday()) % 7
    return today + timedelta(days=ahead or 7)


def parse_numeric_date(token: str) -> Optional[date]:
    """
    'DD/MM/YYYY' 또는 'DD/MM/YY'(2000년대) 토큰을 날짜로 파싱한다. MM/DD로는 해석하지 않는다.

    :param token: 구분자(./-)가 섞인 숫자 날짜
    :type token: str
    :return: 날짜 또는 None(형식/달력상 불가능한 날짜)
    :rtype: Optional[date]
    """

    m = NUMERIC_DATE_RE.match(token.strip())
    if not m:
        return None
    day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    if year < 100:
        year += 2000
    elif year < 1000:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


class DateResolver:
    """
    추출된 날짜 토큰을 기준일(today) 기준의 구체적인 날짜로 바꾼다.
    해석할 수 없는 토큰은 조용히 버리고, 예외를 던지지 않는다.
    """

    def resolve_one(self, token: str, today: date) -> Optional[date]:
        key = " ".join((token or "").strip().lower().split())
        if not key:
            return None
        if key in RELATIVE_DAYS:
            return today + timedelta(days=RELATIVE_DAYS[key])
        if key in WEEKDAYS:
            return next_weekday(today, WEEKDAYS[key])
        return parse_numeric_date(key)

    def resolve(self, tokens: Iterable[str], today: date) -> List[date]:
        out: List[date] = []
        for tok in tokens or []:
            try:
                d = self.resolve_one(tok, today)
            except Exception as e:
                logger.debug("[AUDIT] date token dropped %r: %s", tok, e)
                continue
            if d is not None and d not in out:
                out.append(d)
        return out
