# services/audit_store.py
# 감사 실행/기록 영속화(외부 알림/이력 조회용)
from sqlalchemy.orm import Session
from typing import List, Optional

from models.audit import AuditRun, AuditRecordRow
from schemas.audit_schema import AuditResult, AuditStatus


def _excerpt(text: str, limit: int = 100) -> str:
    s = " ".join((text or "").split())
    return s if len(s) <= limit else s[:limit] + "..."

def save_result(db: Session, result: AuditResult) -> AuditRun:
    """
    감사 결과 1회분을 실행(run) + 기록(record)들로 저장한다.

    :param db: DB 세션
    :type db: Session
    :param result: 엔진 실행 결과
    :type result: AuditResult
    :return: 저장된 실행 행
    :rtype: AuditRun
    """

    counts = result.summary.counts
    run = AuditRun(
        total_messages=result.summary.total_messages,
        candidates=result.summary.candidates,
        confirmed=counts.get(AuditStatus.CONFIRMED, 0),
        conflicts=counts.get(AuditStatus.CONFLICT, 0),
        missing=counts.get(AuditStatus.MISSING, 0),
        calendar_days=",".join(d.isoformat() for d in result.calendar_days) or None,
    )
    by_id = {c.id: c for c in result.candidates}
    for rec in result.records:
        cand = by_id.get(rec.candidate_id)
        if cand is None:
            continue
        run.records.append(AuditRecordRow(
            candidate_id=rec.candidate_id,
            source_message_id=cand.source_message_id,
            chat_id=cand.chat_id,
            sender_name=cand.sender_name or None,
            excerpt=_excerpt(cand.raw_text),
            matched_event_id=rec.matched_event_id,
            status=rec.status.value,
            detail=rec.detail,
            effective_confidence=cand.effective_confidence,
            message_timestamp=cand.timestamp,
        ))
    db.add(run); db.commit(); db.refresh(run)
    return run

def get_run(db: Session, run_id: int) -> Optional[AuditRun]:
    return db.get(AuditRun, run_id)

def list_runs(db: Session, limit: int = 20) -> List[AuditRun]:
    return db.query(AuditRun).order_by(AuditRun.created_at.desc(), AuditRun.id.desc()).limit(limit).all()

def list_records(
    db: Session,
    status: Optional[AuditStatus] = None,
    chat_id: Optional[str] = None,
    limit: int = 50,
) -> List[AuditRecordRow]:
    query = db.query(AuditRecordRow)
    if status: query = query.filter(AuditRecordRow.status == AuditStatus(status).value)
    if chat_id: query = query.filter(AuditRecordRow.chat_id == chat_id)
    return query.order_by(AuditRecordRow.message_timestamp.desc(), AuditRecordRow.id.desc()).limit(limit).all()

def delete_run(db: Session, run_id: int) -> None:
    run = get_run(db, run_id)
    if not run: raise ValueError("NOT_FOUND")
    db.delete(run); db.commit()
