"""录音探测接口"""

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from callsync.database import get_engine
from callsync.schemas.pipeline import RecordingRetryRequest
from callsync.schemas.response import ResponseModel
from callsync.services import recording_locator_service

router = APIRouter(prefix="/recordings", tags=["录音探测"])


@router.post("/retry", response_model=ResponseModel[dict])
async def retry_recordings(request: RecordingRetryRequest, engine: Engine = Depends(get_engine)):
    """探测仍在转码中的录音

    Returns:
        ResponseModel: data 为 {success, checked, updated, still_processing}
    """
    result = await recording_locator_service.retry_recordings(
        min_age_seconds=request.min_age_seconds,
        limit=request.limit,
        owner_id=request.owner_id,
        engine=engine,
    )
    return ResponseModel.from_result(result)
