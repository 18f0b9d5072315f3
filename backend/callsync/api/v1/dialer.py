"""拨号器同步接口"""

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from callsync.database import get_engine
from callsync.schemas.pipeline import DialerSyncRequest, DialerTestRequest
from callsync.schemas.response import ResponseModel
from callsync.services import dialer_sync_service

router = APIRouter(prefix="/dialer", tags=["拨号器同步"])


@router.post("/sync", response_model=ResponseModel[dict])
async def sync_dialer(request: DialerSyncRequest, engine: Engine = Depends(get_engine)):
    """同步拨号器录音

    Returns:
        ResponseModel: data 为 {success, message, total, inserted, skipped, failed_lookups, date_range}
    """
    result = await dialer_sync_service.sync_recordings(
        owner_id=request.owner_id,
        date_from=request.date_from,
        date_to=request.date_to,
        agent_ids=request.agent_ids,
        engine=engine,
    )
    return ResponseModel.from_result(result)


@router.post("/test", response_model=ResponseModel[dict])
async def check_dialer(request: DialerTestRequest, engine: Engine = Depends(get_engine)):
    """测试拨号器连接"""
    result = await dialer_sync_service.check_connection(request.owner_id, engine=engine)
    return ResponseModel.from_result(result)
