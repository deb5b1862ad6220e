# services/audit_aggregator.py
from typing import Dict, List, Sequence

from schemas.audit_schema import AuditExcerpt, AuditRecord, AuditStatus, AuditSummary, Candidate


class AuditAggregator:
    """
    감사 기록을 상태별로 집계하고, Conflict/Missing은 알림용 발췌 목록을 만든다.
    발췌는 원본 메시지 시각 오름차순, 최대 cap개. 부수효과 없음.
    """

    def __init__(self, cap: int = 3, excerpt_length: int = 50):
        self.cap = cap
        self.excerpt_length = excerpt_length

    def _excerpt(self, record: AuditRecord, candidate: Candidate) -> AuditExcerpt:
        text = " ".join(candidate.raw_text.split())
        if len(text) > self.excerpt_length:
            text = text[: self.excerpt_length] + "..."
        return AuditExcerpt(
            candidate_id=record.candidate_id,
            sender_name=candidate.sender_name,
            excerpt=text,
            detail=record.detail,
            timestamp=candidate.timestamp,
        )

    def summarize(
        self,
        records: Sequence[AuditRecord],
        candidates: Sequence[Candidate],
        total_messages: int = 0,
    ) -> AuditSummary:
        by_id: Dict[str, Candidate] = {c.id: c for c in candidates}
        counts = {s: 0 for s in AuditStatus}
        buckets: Dict[AuditStatus, List[AuditExcerpt]] = {AuditStatus.CONFLICT: [], AuditStatus.MISSING: []}

        for rec in records:
            counts[rec.status] += 1
            cand = by_id.get(rec.candidate_id)
            if rec.status in buckets and cand is not None:
                buckets[rec.status].append(self._excerpt(rec, cand))

        for items in buckets.values():
            items.sort(key=lambda e: (e.timestamp, e.candidate_id))

        conflicts = buckets[AuditStatus.CONFLICT]
        missing = buckets[AuditStatus.MISSING]
        return AuditSummary(
            total_messages=total_messages,
            candidates=len(candidates),
            counts=counts,
            conflicts=conflicts[: self.cap],
            missing=missing[: self.cap],
            more_conflicts=max(0, counts[AuditStatus.CONFLICT] - self.cap),
            more_missing=max(0, counts[AuditStatus.MISSING] - self.cap),
            all_good=counts[AuditStatus.CONFLICT] == 0 and counts[AuditStatus.MISSING] == 0,
        )
