# 감사(회의 약속 vs 캘린더) 라우터
# - POST /audits : 메시지 스냅샷을 받아 엔진 실행 후 결과 저장
# - GET  /audits : 최근 실행 목록
# - GET  /audits/records : 저장된 기록 조회(상태/대화방 필터)
# - GET  /audits/{run_id} : 실행 1건 + 기록들
import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from routes.google_calendar import gcal_list_events_for_days
from schemas.audit_schema import AuditIn, AuditOut, AuditRecordOut, AuditRunInfoOut, AuditRunOut, AuditStatus
from services import audit_store
from services.audit_config import load_config
from services.audit_engine import AuditEngine

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/audits", tags=["audits"])


@lru_cache(maxsize=1)
def get_engine() -> AuditEngine:
    """
    환경 설정으로 만든 엔진(프로세스당 1개). 테스트에서는 dependency_overrides로 교체한다.
    """
    return AuditEngine(load_config())


@router.post("", response_model=AuditOut)
async def run_audit(
    payload: AuditIn,
    db: Session = Depends(get_db),
    engine: AuditEngine = Depends(get_engine),
):
    """
    감사 1회 실행.
    events가 오면 그대로 대조하고, 없으면 access_token으로 필요한 날짜만 Google Calendar에서 조회한다.

    :param payload: 메시지 스냅샷 + (이벤트 | access_token)
    :type payload: AuditIn
    :raises HTTPException: 400 - 이벤트/토큰 둘 다 없음, 502 - 캘린더 조회 전부 실패
    :return: 저장된 실행 ID와 결과
    :rtype: AuditOut
    """

    event_source = None
    if payload.events is None:
        if not payload.access_token:
            raise HTTPException(400, "events or access_token is required")
        token, cid, tz = payload.access_token, payload.calendar_id, engine.config.tz
        event_source = lambda days: gcal_list_events_for_days(token, days, cid, tz)

    try:
        result = await engine.run(
            payload.messages,
            events=payload.events,
            event_source=event_source,
            now=payload.now,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

    run = audit_store.save_result(db, result)
    logger.info("[AUDIT] run %s saved with %d records", run.id, len(result.records))
    return AuditOut(run_id=run.id, result=result)


@router.get("", response_model=List[AuditRunInfoOut])
def list_audit_runs(limit: int = 20, db: Session = Depends(get_db)):
    runs = audit_store.list_runs(db, limit=max(1, min(limit, 200)))
    return [AuditRunInfoOut.model_validate(r) for r in runs]


@router.get("/records", response_model=List[AuditRecordOut])
def list_audit_records(
    status: Optional[AuditStatus] = None,
    chat_id: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    rows = audit_store.list_records(db, status=status, chat_id=chat_id, limit=max(1, min(limit, 500)))
    return [AuditRecordOut.model_validate(r) for r in rows]


@router.get("/{run_id}", response_model=AuditRunOut)
def get_audit_run(run_id: int, db: Session = Depends(get_db)):
    run = audit_store.get_run(db, run_id)
    if not run:
        raise HTTPException(404, "Audit run not found")
    return AuditRunOut.model_validate(run)


@router.delete("/{run_id}")
def delete_audit_run(run_id: int, db: Session = Depends(get_db)):
    try:
        audit_store.delete_run(db, run_id)
    except ValueError as e:
        if str(e) == "NOT_FOUND":
            raise HTTPException(404, "Audit run not found")
        raise
    return {"ok": True}
