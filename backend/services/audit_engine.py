# services/audit_engine.py
# 회의 탐지 & 캘린더 대조 파이프라인
#
# messages -> 신호 추출 -> 신뢰도 점수(임계값 미만 제거) -> 문맥 + 오라클 판정 -> 날짜 해석
#          -> 필요한 날짜의 캘린더 이벤트와 대조 -> 집계
#
# 후보 간 공유 상태가 없으므로 후보 단위 실패는 그 후보만 버리고 전체 실행은 계속한다.
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from schemas.audit_schema import (
    AuditRecord,
    AuditResult,
    AuditStatus,
    CalendarEvent,
    Candidate,
    Message,
    SemanticVerdict,
)
from services.audit_aggregator import AuditAggregator
from services.audit_config import DetectionConfig
from services.confidence import ConfidenceScorer
from services.context_window import ContextWindowBuilder, ConversationBuffer
from services.date_resolver import DateResolver
from services.reconciliation import ReconciliationMatcher, authoritative_dates
from services.semantic_judge import SemanticJudge, build_judge, fallback_verdict
from services.signal_extractor import TextSignalExtractor

logger = logging.getLogger(__name__)

EventSource = Callable[[List[date]], Iterable[Any]]


def _coerce(model, items: Iterable[Any], label: str) -> list:
    out = []
    for it in items or []:
        if isinstance(it, model):
            out.append(it)
            continue
        try:
            out.append(model.model_validate(it))
        except ValidationError as e:
            logger.warning("[AUDIT] skip malformed %s: %s", label, e.errors()[:1])
    return out


class AuditEngine:
    """
    감사 1회 실행 단위의 엔진.

    오라클 사용 여부는 생성 시점에 한 번 결정된다(판정 경로, Missing 임계값, 오라클 거부 필터).

    :param config: 탐지 설정(없으면 기본값)
    :type config: Optional[DetectionConfig]
    :param judge: 판정 오라클(없으면 설정으로부터 생성)
    :type judge: Optional[SemanticJudge]
    """

    def __init__(self, config: Optional[DetectionConfig] = None, judge: Optional[SemanticJudge] = None):
        self.config = config or DetectionConfig()
        self.judge = judge if judge is not None else build_judge(self.config)

        self.extractor = TextSignalExtractor(self.config)
        self.scorer = ConfidenceScorer(self.config.weights)
        self.resolver = DateResolver()
        self.windows = ContextWindowBuilder(self.config.context_window_seconds, self.config.context_max_messages)
        self.aggregator = AuditAggregator(self.config.excerpt_cap, self.config.excerpt_length)

        if self.judge.enabled:
            self.matcher = ReconciliationMatcher(self.config.missing_threshold_oracle)
            self._judge_all = self._judge_with_oracle
        else:
            self.matcher = ReconciliationMatcher(self.config.missing_threshold_heuristic)
            self._judge_all = self._judge_offline

    # 1) 추출 + 점수
    def candidate_from(self, message: Message) -> Optional[Candidate]:
        """
        메시지 한 건을 후보로 만든다. 키워드가 없거나 신뢰도가 min_confidence 미만이면 None.
        """
        signals = self.extractor.extract(message.text)
        if signals is None:
            return None
        confidence = self.scorer.score(
            len(signals.keywords), len(signals.dates), len(signals.times), len(signals.names)
        )
        if confidence < self.config.min_confidence:
            return None
        return Candidate(
            id=f"cand_{message.id}",
            source_message_id=message.id,
            chat_id=message.chat_id,
            sender_name=message.sender_name or message.sender_id,
            raw_text=message.text,
            timestamp=message.timestamp,
            keywords=signals.keywords,
            candidate_date_tokens=signals.dates,
            candidate_time_tokens=signals.times,
            candidate_names=signals.names,
            heuristic_confidence=confidence,
        )

    def detect(self, messages: Sequence[Message]) -> List[Candidate]:
        found: List[Candidate] = []
        for msg in messages:
            try:
                cand = self.candidate_from(msg)
            except Exception as e:
                logger.error("[AUDIT] detection failed for message %s: %s", msg.id, e)
                continue
            if cand is not None:
                logger.debug(
                    "[AUDIT] candidate '%s...' (confidence %d%%)",
                    cand.raw_text[:50], round(cand.heuristic_confidence * 100),
                )
                found.append(cand)
        return found

    # 2) 오라클 판정
    async def _judge_offline(
        self, candidates: Sequence[Candidate], buffer: ConversationBuffer, today: date
    ) -> List[SemanticVerdict]:
        return [self.judge.judge(c, [], today) for c in candidates]

    async def _judge_with_oracle(
        self, candidates: Sequence[Candidate], buffer: ConversationBuffer, today: date
    ) -> List[SemanticVerdict]:
        # 오라클 호출은 전용 풀에서만 실행: 시간 초과 후에도 실행 중인 호출이 워커를 점유하므로
        # 동시 호출 수는 oracle_max_concurrency를 넘지 않는다
        limit = max(1, self.config.oracle_max_concurrency)
        pool = ThreadPoolExecutor(max_workers=limit, thread_name_prefix="oracle")
        loop = asyncio.get_running_loop()
        sem = asyncio.Semaphore(limit)

        async def one(cand: Candidate) -> SemanticVerdict:
            context = self.windows.build(cand, buffer)
            async with sem:
                try:
                    return await asyncio.wait_for(
                        loop.run_in_executor(pool, self.judge.judge, cand, context, today),
                        timeout=self.config.oracle_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.error("[JUDGE] oracle timed out for %s, using fallback", cand.id)
                except Exception as e:
                    logger.error("[JUDGE] oracle call crashed for %s: %s, using fallback", cand.id, e)
            return fallback_verdict(cand, self.config.fallback_threshold)

        try:
            return list(await asyncio.gather(*(one(c) for c in candidates)))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    async def enrich(
        self, candidates: Sequence[Candidate], buffer: ConversationBuffer, today: date
    ) -> List[Candidate]:
        """
        판정을 붙이고 날짜 토큰을 실제 날짜로 해석한 사본을 만든다(후보당 한 번).
        오라클 사용 시 무효 판정 또는 신뢰도가 oracle_accept_confidence 이하인 후보는 제외한다.

        :param candidates: 추출 단계 후보
        :type candidates: Sequence[Candidate]
        :param buffer: 대화별 메시지 버퍼(문맥 창 재료)
        :type buffer: ConversationBuffer
        :param today: 상대 날짜 해석 기준일
        :type today: date
        :return: 보강된 후보 목록
        :rtype: List[Candidate]
        """

        verdicts = await self._judge_all(candidates, buffer, today)
        out: List[Candidate] = []
        for cand, verdict in zip(candidates, verdicts):
            if self.judge.enabled and (
                not verdict.is_valid_meeting or verdict.confidence <= self.config.oracle_accept_confidence
            ):
                logger.info("[JUDGE] rejected '%s...': %s", cand.raw_text[:40], verdict.reasoning)
                continue
            try:
                resolved = self.resolver.resolve(cand.candidate_date_tokens, today)
                out.append(cand.model_copy(update={"semantic_verdict": verdict, "resolved_dates": resolved}))
            except Exception as e:
                logger.error("[AUDIT] enrichment failed for %s: %s", cand.id, e)
        return out

    # 3) 조회할 날짜
    def required_days(self, candidates: Sequence[Candidate], today: date) -> List[date]:
        """
        캘린더를 좁게 조회하기 위해 필요한 날짜들의 최소 집합.
        후보가 없으면 오늘부터 7일, 날짜가 없는 후보는 오늘/내일을 본다.
        """
        if not candidates:
            return [today + timedelta(days=i) for i in range(7)]
        days = set()
        for cand in candidates:
            found = authoritative_dates(cand)
            if found:
                days.update(found)
            else:
                days.update({today, today + timedelta(days=1)})
        return sorted(days)

    # 4) 대조
    def reconcile(self, candidates: Sequence[Candidate], events: Sequence[CalendarEvent]) -> List[AuditRecord]:
        records: List[AuditRecord] = []
        for cand in candidates:
            try:
                rec = self.matcher.match(cand, events)
            except Exception as e:
                logger.error("[AUDIT] matching failed for %s: %s", cand.id, e)
                continue
            if rec is not None:
                records.append(rec)
        return records

    async def run(
        self,
        messages: Optional[Iterable[Any]],
        events: Optional[Iterable[Any]] = None,
        event_source: Optional[EventSource] = None,
        now: Optional[Union[datetime, date]] = None,
    ) -> AuditResult:
        """
        감사 1회 전체 실행.

        :param messages: 메시지 스냅샷(Message 또는 dict)
        :type messages: Optional[Iterable[Any]]
        :param events: 이미 조회된 캘린더 이벤트(CalendarEvent 또는 Google 이벤트 dict)
        :type events: Optional[Iterable[Any]]
        :param event_source: events가 없을 때 필요한 날짜 목록으로 이벤트를 가져오는 함수
        :type event_source: Optional[Callable[[List[date]], Iterable[Any]]]
        :param now: 기준 시각(없으면 설정 타임존의 현재 시각)
        :type now: Optional[Union[datetime, date]]
        :raises ValueError: messages 누락, 또는 events/event_source 둘 다 없음
        :return: 기록 + 요약 + 후보 + 조회 날짜
        :rtype: AuditResult
        """

        if messages is None:
            raise ValueError("messages are required")
        if events is None and event_source is None:
            raise ValueError("events or event_source is required")

        if now is None:
            now = datetime.now(self.config.tz)
        today = now.date() if isinstance(now, datetime) else now

        msgs = _coerce(Message, messages, "message")
        logger.info("[AUDIT] start: %d messages, oracle=%s, today=%s", len(msgs), self.judge.enabled, today)

        buffer = ConversationBuffer.from_messages(msgs, self.config.buffer_size_per_chat)
        detected = self.detect(msgs)
        logger.info("[AUDIT] keyword detector found %d potential meetings", len(detected))

        candidates = await self.enrich(detected, buffer, today)
        days = self.required_days(candidates, today)

        if events is None:
            events = await asyncio.to_thread(event_source, days)
        calendar = _coerce(CalendarEvent, events, "calendar event")
        logger.info("[AUDIT] %d candidates vs %d calendar events over %d days", len(candidates), len(calendar), len(days))

        records = self.reconcile(candidates, calendar)
        summary = self.aggregator.summarize(records, candidates, total_messages=len(msgs))
        logger.info(
            "[AUDIT] done: confirmed=%d conflicts=%d missing=%d",
            summary.counts[AuditStatus.CONFIRMED],
            summary.counts[AuditStatus.CONFLICT],
            summary.counts[AuditStatus.MISSING],
        )
        return AuditResult(records=records, summary=summary, candidates=candidates, calendar_days=days)
