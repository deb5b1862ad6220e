# services/signal_extractor.py
# 메시지 한 건에서 키워드/날짜/시간/이름 토큰을 뽑아낸다.
#
# 키워드는 대소문자 무시 '부분 문자열' 포함으로 매칭한다(단어 경계 X).
# 토큰 단위 매칭으로 바꾸면 min_confidence도 다시 맞춰야 한다.
import re
from typing import Iterable, List, NamedTuple, Optional

from services.audit_config import DetectionConfig

_HE = "א-ת"

# 날짜 패턴: 절대(D/M/Y), 상대(오늘/내일), 요일(영/히)
DATE_PATTERNS = [
    re.compile(r"(?<![\d./])\d{1,2}[./-]\d{1,2}[./-]\d{2,4}(?![\d./-])"),
    re.compile(r"\b(?:day after tomorrow|tomorrow|today)\b", re.IGNORECASE),
    re.compile(r"(?:מחרתיים|מחר|היום)(?![" + _HE + r"])"),
    re.compile(r"\b(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b", re.IGNORECASE),
    re.compile(r"(?:ראשון|שלישי|שני|רביעי|חמישי|שישי|שבת)(?![" + _HE + r"])"),
]

# 시간 패턴: 구체적인 것부터(HH:MM -> 시+오전/오후 -> 전치사+시 -> 시간대 단어)
TIME_PATTERNS = [
    re.compile(r"(?<![\d:])\d{1,2}:\d{2}(?:\s?(?:am|pm))?(?![\d:])", re.IGNORECASE),
    re.compile(r"(?<![\d:])\d{1,2}\s?(?:am|pm)\b", re.IGNORECASE),
    re.compile(r"(?<![\d:])\d{1,2}\s?(?:בבוקר|בצהריים|בערב|בלילה|אחה\"צ|אחה״צ)"),
    re.compile(r"\b(?:at|around)\s+\d{1,2}(?![\d:./])(?!\s?(?:am|pm))", re.IGNORECASE),
    re.compile(r"(?:בשעה\s?|ב-|ב־)\d{1,2}(?![\d:./])"),
    re.compile(r"\b(?:afternoon|morning|evening|noon|night)\b", re.IGNORECASE),
    re.compile(r"(?:אחר הצהריים|אחה\"צ|אחה״צ|בוקר|צהריים|ערב|לילה)"),
]

# 이름 패턴: 'with X' / 'עם X' + 대문자 두 단어 / 히브리어 두 단어(대소문자 없음 -> 근사치)
NAME_PATTERNS = [
    re.compile(r"\b[Ww]ith\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)"),
    re.compile(r"(?<![" + _HE + r"])עם\s+([" + _HE + r"]+)"),
    re.compile(r"\b([A-Z][a-z]+\s+[A-Z][a-z]+)\b"),
    re.compile(r"([" + _HE + r"]{2,}\s+[" + _HE + r"]{2,})"),
]


class TextSignals(NamedTuple):
    keywords: List[str]
    dates: List[str]
    times: List[str]
    names: List[str]


def _dedupe(items: Iterable[str]) -> List[str]:
    """
    대소문자/앞뒤 공백을 무시하고 처음 나온 표기만 남긴다.
    """
    out: List[str] = []
    seen: set = set()
    for it in items:
        s = (it or "").strip()
        key = s.lower()
        if s and key not in seen:
            seen.add(key)
            out.append(s)
    return out


class TextSignalExtractor:
    """
    설정된 두 언어 키워드 목록으로 메시지 텍스트의 신호를 추출한다.

    :param config: 키워드 목록을 담은 탐지 설정
    :type config: DetectionConfig
    """

    def __init__(self, config: DetectionConfig):
        self.keywords = _dedupe(list(config.hebrew_keywords) + list(config.english_keywords))
        self._lowered = [(k, k.lower()) for k in self.keywords]

    def match_keywords(self, text: str) -> List[str]:
        low = (text or "").lower()
        return [k for k, kl in self._lowered if kl in low]

    def extract_dates(self, text: str) -> List[str]:
        return _dedupe(m.group(0) for p in DATE_PATTERNS for m in p.finditer(text or ""))

    def extract_times(self, text: str) -> List[str]:
        return _dedupe(m.group(0) for p in TIME_PATTERNS for m in p.finditer(text or ""))

    def extract_names(self, text: str) -> List[str]:
        names = []
        for p in NAME_PATTERNS:
            for m in p.finditer(text or ""):
                name = m.group(1).strip()
                if len(name) > 2:
                    names.append(name)
        return _dedupe(names)

    def extract(self, text: str) -> Optional[TextSignals]:
        """
        텍스트에서 모든 신호를 추출한다. 매칭되는 키워드가 하나도 없으면 None.

        :param text: 메시지 원문
        :type text: str
        :return: 추출된 신호 묶음 또는 None
        :rtype: Optional[TextSignals]
        """

        if not text or not text.strip():
            return None
        keywords = self.match_keywords(text)
        if not keywords:
            return None
        return TextSignals(
            keywords=keywords,
            dates=self.extract_dates(text),
            times=self.extract_times(text),
            names=self.extract_names(text),
        )
