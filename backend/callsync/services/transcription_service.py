"""AI 转写分析服务

下载通话录音，连同分析提示一起发送给多模态模型，解析模型返回的
JSON 并写回通话记录。

两种调用方式:
- transcribe_record: 指定单条记录，无条件处理（人工重试）
- transcribe_pending: 批量处理待分析 / 可重试的记录，按批并发
"""

import base64
from datetime import datetime
from typing import Any

import httpx
from loguru import logger
from sqlalchemy import and_, or_, update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from callsync.clients.ai import AIClient, AIClientError, get_ai_client
from callsync.clients.ai.prompts import CALL_ANALYSIS_INSTRUCTION, CALL_ANALYSIS_PROMPT
from callsync.config import settings
from callsync.database import get_engine
from callsync.models.call_record import AnalysisState, CallRecord, FailureKind, UploadSource
from callsync.services.call_analysis import parse_analysis
from callsync.services.state_marker import (
    RECORDING_NOT_AVAILABLE,
    TRANSCRIBING,
    render_failure,
)
from callsync.utils.async_helper import gather_in_waves
from callsync.utils.http_client import audio_client

# Base64 分块大小，必须是 3 的倍数，保证分块编码后可以直接拼接
BASE64_CHUNK_SIZE = 8190


class AudioFetchError(Exception):
    """录音下载失败"""

    def __init__(self, detail: str, status_code: int | None = None):
        self.detail = detail
        self.status_code = status_code
        self.message = f"Audio fetch failed: {detail}"
        super().__init__(self.message)


def selectable_condition():
    """批量模式可以领取的记录条件"""
    return or_(
        and_(
            CallRecord.analysis_state == AnalysisState.QUEUED.value,
            CallRecord.is_processing.is_(False),
        ),
        and_(
            CallRecord.analysis_state == AnalysisState.FAILED.value,
            or_(
                CallRecord.failure_kind.is_(None),
                CallRecord.failure_kind != FailureKind.NO_RECORDING.value,
            ),
        ),
    )


def encode_audio(data: bytes, chunk_size: int = BASE64_CHUNK_SIZE) -> str:
    """分块 Base64 编码"""
    return "".join(
        base64.b64encode(data[i : i + chunk_size]).decode("ascii")
        for i in range(0, len(data), chunk_size)
    )


def audio_format(url: str) -> str:
    """根据扩展名判断音频格式"""
    path = url.split("?", 1)[0].lower()
    return "wav" if path.endswith(".wav") else "mp3"


async def fetch_audio(url: str, timeout: float | None) -> bytes:
    """下载录音

    Args:
        url: 录音地址
        timeout: 超时时间（秒），None 表示不限制

    Raises:
        AudioFetchError: 非 2xx 响应或网络错误
        httpx.TimeoutException: 超时
    """
    async with audio_client(timeout) as client:
        try:
            response = await client.get(url)
        except httpx.TimeoutException:
            raise
        except httpx.HTTPError as e:
            raise AudioFetchError(str(e) or e.__class__.__name__) from e

    if not 200 <= response.status_code < 300:
        raise AudioFetchError(f"HTTP {response.status_code}", status_code=response.status_code)
    return response.content


def classify_failure(exc: BaseException) -> tuple[FailureKind, str]:
    """根据异常判断失败原因

    Returns:
        tuple: (失败类型, 错误详情)
    """
    if isinstance(exc, AudioFetchError):
        return FailureKind.FETCH_FAILED, exc.detail

    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    status_code = exc.status_code if isinstance(exc, AIClientError) else None

    if status_code == 402 or "402" in message:
        return FailureKind.CREDITS_EXHAUSTED, message
    if status_code == 429 or "429" in message:
        return FailureKind.RATE_LIMITED, message
    if isinstance(exc, AIClientError):
        # AI 网关超时不是录音下载超时
        return FailureKind.ERROR, message
    lowered = message.lower()
    if isinstance(exc, httpx.TimeoutException) or "timeout" in lowered or "aborted" in lowered:
        return FailureKind.FETCH_TIMEOUT, message
    return FailureKind.ERROR, message


def claim_record(session: Session, record_id: int, conditional: bool = True) -> bool:
    """领取记录并标记为转写中

    Args:
        session: 数据库会话
        record_id: 记录ID
        conditional: 为 True 时只有记录仍满足批量选取条件才能领取

    Returns:
        bool: 是否领取成功
    """
    stmt = update(CallRecord).where(CallRecord.id == record_id)
    if conditional:
        stmt = stmt.where(selectable_condition())
    stmt = stmt.values(
        analysis_state=AnalysisState.IN_PROGRESS.value,
        failure_kind=None,
        summary=TRANSCRIBING,
        updated_at=datetime.now(),
    )
    result = session.exec(stmt)
    session.commit()
    return result.rowcount == 1


def _save(engine: Engine, record_id: int, **fields: Any) -> None:
    with Session(engine) as session:
        record = session.get(CallRecord, record_id)
        if record is None:
            return
        for key, value in fields.items():
            setattr(record, key, value)
        record.touch()
        session.add(record)
        session.commit()


def _mark_failed(engine: Engine, record_id: int, kind: FailureKind, detail: str = "") -> str:
    summary = render_failure(kind, detail)
    _save(
        engine,
        record_id,
        analysis_state=AnalysisState.FAILED.value,
        failure_kind=kind.value,
        summary=summary,
    )
    return summary


async def process_record(
    engine: Engine,
    ai_client: AIClient,
    record_id: int,
    fetch_timeout: float | None,
) -> bool:
    """处理单条已领取的记录

    Returns:
        bool: 是否分析成功
    """
    with Session(engine) as session:
        record = session.get(CallRecord, record_id)
        if record is None:
            logger.warning(f"记录不存在: {record_id}")
            return False
        recording_url = record.recording_url
        from_dialer = record.upload_source == UploadSource.DIALER.value

    if not recording_url:
        logger.warning(f"记录 {record_id} 无录音地址")
        _mark_failed(engine, record_id, FailureKind.NO_RECORDING)
        return False

    try:
        try:
            audio = await fetch_audio(recording_url, fetch_timeout)
        except AudioFetchError as e:
            if e.status_code == 404 and from_dialer:
                # 录音可能还在转码，交回录音探测
                logger.info(f"记录 {record_id} 录音暂不可用，交回录音探测: {recording_url}")
                _save(
                    engine,
                    record_id,
                    is_processing=True,
                    analysis_state=AnalysisState.QUEUED.value,
                    failure_kind=None,
                    summary=RECORDING_NOT_AVAILABLE,
                )
                return False
            raise

        logger.debug(f"记录 {record_id} 录音下载完成: {len(audio)} bytes")
        response = await ai_client.transcribe_audio(
            encode_audio(audio),
            audio_format(recording_url),
            CALL_ANALYSIS_PROMPT,
            instruction=CALL_ANALYSIS_INSTRUCTION,
        )
        analysis = parse_analysis(response.content)
    except Exception as e:
        kind, detail = classify_failure(e)
        summary = _mark_failed(engine, record_id, kind, detail)
        logger.error(f"记录 {record_id} 转写失败: {summary}")
        return False

    now = datetime.now()
    _save(
        engine,
        record_id,
        **analysis,
        analysis_state=AnalysisState.DONE.value,
        failure_kind=None,
        analyzed_at=now,
    )
    logger.info(f"记录 {record_id} 转写完成: status={analysis['status']}")
    return True


async def claim_and_process(
    engine: Engine,
    ai_client: AIClient,
    record_id: int,
    fetch_timeout: float | None,
) -> bool | None:
    """开始处理前才领取记录，领取失败（已被其他批次处理）返回 None"""
    with Session(engine) as session:
        if not claim_record(session, record_id):
            logger.info(f"记录 {record_id} 已被领取，跳过")
            return None
    return await process_record(engine, ai_client, record_id, fetch_timeout)


def _resolve_ai_client(ai_client: AIClient | None) -> AIClient | None:
    if ai_client is not None:
        return ai_client
    if not settings.ai_api_key:
        return None
    return get_ai_client()


async def transcribe_record(
    record_id: int,
    *,
    engine: Engine | None = None,
    ai_client: AIClient | None = None,
) -> dict[str, Any]:
    """转写指定记录（无条件领取，不限制下载超时）

    Returns:
        dict: {success, record_id, analysis_state, summary} 或 {success: False, error}
    """
    engine = engine or get_engine()
    ai_client = _resolve_ai_client(ai_client)
    if ai_client is None:
        return {"success": False, "error": "AI API key not configured"}

    with Session(engine) as session:
        if not claim_record(session, record_id, conditional=False):
            return {"success": False, "error": f"Record {record_id} not found"}

    logger.info(f"开始转写单条记录: {record_id}")
    ok = await process_record(engine, ai_client, record_id, fetch_timeout=None)

    with Session(engine) as session:
        record = session.get(CallRecord, record_id)
        return {
            "success": ok,
            "record_id": record_id,
            "analysis_state": record.analysis_state if record else None,
            "summary": record.summary if record else None,
        }


async def transcribe_pending(
    limit: int | None = None,
    concurrency: int | None = None,
    owner_id: str | None = None,
    *,
    engine: Engine | None = None,
    ai_client: AIClient | None = None,
) -> dict[str, Any]:
    """批量转写待分析记录

    选取 queued 且录音已就绪的记录，以及可重试的失败记录，按创建时间
    从早到晚处理，每批 concurrency 条并发。每条记录在所在批次开始时才领取，
    已被其他批次领取的记录计入 skipped_count。

    Args:
        limit: 最多处理的记录数
        concurrency: 每批并发数
        owner_id: 只处理指定用户的记录
        engine: 数据库引擎
        ai_client: AI 客户端

    Returns:
        dict: {success, processed, success_count, fail_count, skipped_count}
    """
    engine = engine or get_engine()
    limit = max(int(limit or settings.transcribe_default_limit), 1)
    concurrency = max(int(concurrency or settings.transcribe_default_concurrency), 1)

    ai_client = _resolve_ai_client(ai_client)
    if ai_client is None:
        return {"success": False, "error": "AI API key not configured"}

    with Session(engine) as session:
        query = select(CallRecord.id).where(selectable_condition())
        if owner_id:
            query = query.where(CallRecord.owner_id == owner_id)
        record_ids = list(
            session.exec(query.order_by(CallRecord.created_at.asc()).limit(limit)).all()
        )

    if not record_ids:
        logger.debug("没有待转写的记录")
        return {
            "success": True,
            "processed": 0,
            "success_count": 0,
            "fail_count": 0,
            "skipped_count": 0,
        }

    logger.info(f"开始批量转写: 选中 {len(record_ids)} 条, 并发 {concurrency}")

    results = await gather_in_waves(
        [
            claim_and_process(engine, ai_client, record_id, settings.audio_fetch_timeout)
            for record_id in record_ids
        ],
        concurrency=concurrency,
    )

    success_count = fail_count = skipped_count = 0
    for record_id, result in zip(record_ids, results):
        if isinstance(result, BaseException):
            logger.error(f"记录 {record_id} 处理异常: {result}")
            fail_count += 1
        elif result is None:
            skipped_count += 1
        elif result:
            success_count += 1
        else:
            fail_count += 1
    processed = success_count + fail_count

    logger.info(
        f"批量转写完成: 处理 {processed}, 成功 {success_count}, "
        f"失败 {fail_count}, 跳过 {skipped_count}"
    )

    return {
        "success": True,
        "processed": processed,
        "success_count": success_count,
        "fail_count": fail_count,
        "skipped_count": skipped_count,
    }
