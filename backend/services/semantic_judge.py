# services/semantic_judge.py
# 외부 판정 오라클(OpenAI 호환 chat completions) 어댑터
#
# - 오라클 비활성(키 없음): 결정적 폴백 판정
# - 응답이 깨졌을 때: 코드펜스 제거 -> 첫 번째 균형 잡힌 JSON 객체 추출 -> 실패 시 'parse failed' 판정
# - 네트워크/HTTP 오류, 빈 응답: 즉시 휴리스틱 폴백 판정으로 강등(재시도 없음)
# 어떤 경우에도 이 모듈 밖으로 예외를 던지지 않는다.
import re
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from schemas.audit_schema import Candidate, Message, SemanticVerdict
from services.audit_config import DetectionConfig
from services.judge_prompt import JUDGE_SYSTEM_TEMPLATE, build_user_prompt

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
PARSE_FAILED_REASON = "Failed to parse oracle response"
FALLBACK_REASON = "Oracle unavailable, using keyword detection fallback"


def fallback_verdict(candidate: Candidate, threshold: float = 0.3) -> SemanticVerdict:
    """
    오라클 없이 휴리스틱만으로 만든 판정.
    날짜나 시간 신호가 있고 휴리스틱 신뢰도가 threshold를 넘으면 유효로 본다.
    """
    has_when = bool(candidate.candidate_date_tokens or candidate.candidate_time_tokens)
    return SemanticVerdict(
        is_valid_meeting=has_when and candidate.heuristic_confidence > threshold,
        confidence=round(candidate.heuristic_confidence * 100),
        reasoning=FALLBACK_REASON,
    )


def extract_json_object(raw: str) -> Optional[str]:
    """
    문자열에서 첫 번째로 괄호 균형이 맞는 JSON 객체 부분 문자열을 찾는다.
    문자열 리터럴 안의 괄호/이스케이프는 무시한다.

    :param raw: 모델 원문(설명 문장/코드펜스 포함 가능)
    :type raw: str
    :return: '{...}' 부분 문자열 또는 None
    :rtype: Optional[str]
    """

    text = FENCE_RE.sub("", raw or "")
    start = text.find("{")
    while start != -1:
        depth = 0
        in_str = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return None


def _pick(d: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = d.get(k)
        if v is None:
            continue
        if isinstance(v, str) and (not v.strip() or v.strip().lower() == "null"):
            continue
        return v
    return None


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("true", "yes", "1")
    return bool(v)


def _as_list(v: Any) -> Optional[List[str]]:
    if v is None:
        return None
    if isinstance(v, str):
        return [v]
    if isinstance(v, list):
        out = [str(x).strip() for x in v if x is not None and str(x).strip()]
        return out or None
    return None


def parse_verdict(raw: str) -> SemanticVerdict:
    """
    오라클 응답 텍스트를 SemanticVerdict로 바꾼다. 실패하면 신뢰도 0의 무효 판정.

    :param raw: 오라클 응답 원문
    :type raw: str
    :return: 판정(신뢰도는 0~100으로 보정됨)
    :rtype: SemanticVerdict
    """

    blob = extract_json_object(raw)
    try:
        if blob is None:
            raise ValueError("no JSON object in response")
        parsed = json.loads(blob)
        if not isinstance(parsed, dict):
            raise ValueError("JSON is not an object")
    except ValueError as e:
        logger.error("[JUDGE] parse failed: %s | raw=%s", e, (raw or "")[:200])
        return SemanticVerdict(is_valid_meeting=False, confidence=0, reasoning=PARSE_FAILED_REASON)

    date_time = _pick(parsed, "dateTime", "extractedDateTime", "date_time")
    location = _pick(parsed, "location", "extractedLocation")
    meeting_type = _pick(parsed, "meetingType", "meeting_type")
    return SemanticVerdict(
        is_valid_meeting=_as_bool(_pick(parsed, "isValidMeeting", "is_valid_meeting")),
        confidence=_pick(parsed, "confidence") or 0,
        date_time=str(date_time) if date_time is not None else None,
        location=str(location) if location is not None else None,
        participants=_as_list(_pick(parsed, "participants", "extractedParticipants")),
        meeting_type=str(meeting_type) if meeting_type is not None else None,
        reasoning=str(_pick(parsed, "reasoning") or "No reasoning provided"),
    )


class SemanticJudge:
    """
    판정 오라클 인터페이스. judge(candidate, context) -> SemanticVerdict
    """

    enabled = False

    def judge(self, candidate: Candidate, context: List[Message], today: Optional[date] = None) -> SemanticVerdict:
        raise NotImplementedError


class FallbackJudge(SemanticJudge):
    enabled = False

    def __init__(self, threshold: float = 0.3):
        self.threshold = threshold

    def judge(self, candidate: Candidate, context: List[Message], today: Optional[date] = None) -> SemanticVerdict:
        return fallback_verdict(candidate, self.threshold)


class OpenAIJudge(SemanticJudge):
    """
    OpenAI Chat Completions API로 후보 한 건을 판정한다. 후보당 정확히 한 번 호출.

    :param api_key: API 인증키
    :type api_key: str
    :param base: API 엔드포인트 기본 URL
    :type base: str
    :param model: 모델 이름
    :type model: str
    :param timeout: HTTP 타임아웃(초)
    :type timeout: float
    :param fallback_threshold: 호출 실패 시 폴백 판정의 유효 기준
    :type fallback_threshold: float
    """

    enabled = True

    def __init__(self, api_key: str, base: str = "https://api.openai.com/v1", model: str = "gpt-4o-mini",
                 timeout: float = 30.0, fallback_threshold: float = 0.3):
        self.api_key = api_key
        self.base = base.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.fallback_threshold = fallback_threshold

    def _degraded(self, candidate: Candidate, reason: str) -> SemanticVerdict:
        logger.warning("[JUDGE] oracle unavailable for %s (%s), using fallback", candidate.id, reason)
        return fallback_verdict(candidate, self.fallback_threshold)

    def _messages(self, candidate: Candidate, context: List[Message], today: date) -> List[Dict[str, str]]:
        system_prompt = JUDGE_SYSTEM_TEMPLATE.replace("{TODAY}", today.strftime("%Y-%m-%d (%A)"))
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": build_user_prompt(candidate, context)},
        ]

    def judge(self, candidate: Candidate, context: List[Message], today: Optional[date] = None) -> SemanticVerdict:
        today = today or date.today()
        logger.debug("[JUDGE] req: candidate=%s text='%s...'", candidate.id, candidate.raw_text[:50].replace("\n", " "))
        try:
            r = requests.post(
                f"{self.base}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "temperature": 0.1,
                    "max_tokens": 300,
                    "messages": self._messages(candidate, context, today),
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("[JUDGE] oracle request failed for %s: %s", candidate.id, e)
            return self._degraded(candidate, type(e).__name__)

        if not r.ok:
            logger.error("[JUDGE] oracle API error: %s %s", r.status_code, r.text[:200])
            return self._degraded(candidate, f"HTTP {r.status_code}")

        try:
            data = r.json()
            msg = (data.get("choices") or [{}])[0].get("message") or {}
            content = msg.get("content") or ""
        except (ValueError, AttributeError, IndexError) as e:
            logger.error("[JUDGE] malformed oracle payload for %s: %s", candidate.id, e)
            return self._degraded(candidate, "malformed payload")

        if not content.strip():
            return self._degraded(candidate, "empty response")

        verdict = parse_verdict(content)
        logger.debug("[JUDGE] res: candidate=%s valid=%s conf=%d", candidate.id, verdict.is_valid_meeting, verdict.confidence)
        return verdict


def build_judge(config: DetectionConfig) -> SemanticJudge:
    """
    설정에 따라 오라클 구현을 한 번만 고른다(호출마다 분기하지 않음).
    """
    if config.oracle_enabled:
        return OpenAIJudge(
            config.oracle_api_key, config.oracle_base, config.oracle_model, config.oracle_timeout,
            fallback_threshold=config.fallback_threshold,
        )
    logger.warning("[JUDGE] OPENAI_API_KEY not set. Oracle analysis will use keyword fallback.")
    return FallbackJudge(config.fallback_threshold)
