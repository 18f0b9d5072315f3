"""通话记录查询接口

只读，供运维查看流水线中各记录的进度。
"""

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from callsync.database import get_session
from callsync.models.call_record import CallRecord, CallRecordResponse
from callsync.schemas.response import ResponseModel

router = APIRouter(prefix="/records", tags=["通话记录"])


@router.get("", response_model=ResponseModel)
def list_records(
    owner_id: str | None = Query(None, description="用户ID"),
    analysis_state: str | None = Query(None, description="分析状态"),
    is_processing: bool | None = Query(None, description="录音是否仍在转码"),
    limit: int = Query(50, ge=1, le=500),
    session: Session = Depends(get_session),
):
    """获取通话记录列表（按创建时间倒序）"""
    query = select(CallRecord)
    if owner_id:
        query = query.where(CallRecord.owner_id == owner_id)
    if analysis_state:
        query = query.where(CallRecord.analysis_state == analysis_state)
    if is_processing is not None:
        query = query.where(CallRecord.is_processing == is_processing)

    records = session.exec(query.order_by(CallRecord.created_at.desc()).limit(limit)).all()
    return ResponseModel(data=[CallRecordResponse.model_validate(r) for r in records])


@router.get("/{record_id}", response_model=ResponseModel)
def get_record(record_id: int, session: Session = Depends(get_session)):
    """获取单条通话记录"""
    record = session.get(CallRecord, record_id)
    if not record:
        return ResponseModel.error(code=404, message="记录不存在")
    return ResponseModel(data=CallRecordResponse.model_validate(record))
