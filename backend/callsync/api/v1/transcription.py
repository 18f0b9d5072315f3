"""AI 转写接口"""

from fastapi import APIRouter, Depends
from sqlalchemy.engine import Engine

from callsync.database import get_engine
from callsync.schemas.pipeline import TranscriptionRunRequest
from callsync.schemas.response import ResponseModel
from callsync.services import transcription_service

router = APIRouter(prefix="/transcription", tags=["AI转写"])


@router.post("/run", response_model=ResponseModel[dict])
async def run_transcription(
    request: TranscriptionRunRequest, engine: Engine = Depends(get_engine)
):
    """执行转写

    传 record_id 时转写单条记录，否则批量处理待分析记录。
    """
    if request.record_id is not None:
        result = await transcription_service.transcribe_record(request.record_id, engine=engine)
    else:
        result = await transcription_service.transcribe_pending(
            limit=request.limit,
            concurrency=request.concurrency,
            owner_id=request.owner_id,
            engine=engine,
        )
    return ResponseModel.from_result(result)
