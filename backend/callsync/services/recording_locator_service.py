"""录音定位服务

拨号器刚同步过来的录音可能还在服务器端转码（.wav -> .mp3），地址暂时
不可访问。此服务定期探测 is_processing 记录的候选地址，找到可播放的
mp3 后把记录交给 AI 转写。探测失败的记录只刷新 updated_at，下一轮继续。
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any

import httpx
from loguru import logger
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from callsync.clients.dialer.base import clean_base_url
from callsync.clients.dialer.recording_url import base_url_from_recording, build_url_variants, is_mp3
from callsync.config import settings
from callsync.database import get_engine
from callsync.models.call_record import AnalysisState, CallRecord
from callsync.models.dialer_integration import DialerIntegration
from callsync.services.dialer_sync_service import TranscriptionTrigger, fire_trigger
from callsync.services.state_marker import (
    PENDING_ANALYSIS,
    RECORDING_NOT_AVAILABLE,
    RECORDING_STILL_PROCESSING,
)
from callsync.utils.async_helper import gather_in_waves
from callsync.utils.http_client import probe_client

MIN_AGE_RANGE = (15, 600)
LIMIT_RANGE = (1, 200)

# 同时探测的记录数
PROBE_CONCURRENCY = 10


def _clamp(value: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


async def probe_url(client: httpx.AsyncClient, url: str) -> bool:
    """探测地址是否可访问

    先发 HEAD，服务器拒绝 HEAD（403/405）时改用只取 1 字节的 Range GET。
    网络错误视为不可访问。
    """
    try:
        response = await client.head(url)
        if response.status_code in (403, 405):
            response = await client.get(url, headers={"Range": "bytes=0-0"})
    except httpx.HTTPError as e:
        logger.debug(f"探测失败 {url}: {e}")
        return False
    return 200 <= response.status_code < 300


async def locate_recording(
    client: httpx.AsyncClient,
    recording_url: str | None,
    base_url: str | None,
    lead_id: str | None,
    call_time: datetime | None,
) -> str | None:
    """按候选顺序探测，返回第一个可访问的 mp3 地址"""
    variants = build_url_variants(recording_url, base_url, lead_id, call_time)
    for url in variants:
        if not is_mp3(url):
            continue
        if await probe_url(client, url):
            return url
    return None


async def retry_recordings(
    min_age_seconds: int | None = None,
    limit: int | None = None,
    owner_id: str | None = None,
    *,
    engine: Engine | None = None,
    trigger: TranscriptionTrigger | None = None,
) -> dict[str, Any]:
    """探测仍在转码中的录音

    Args:
        min_age_seconds: 距上次探测的最小间隔（秒），限制在 [15, 600]
        limit: 本轮最多探测的记录数，限制在 [1, 200]
        owner_id: 只处理指定用户的记录
        engine: 数据库引擎
        trigger: 转写触发函数

    Returns:
        dict: {success, checked, updated, still_processing}
    """
    engine = engine or get_engine()
    min_age = _clamp(
        settings.recording_min_age_seconds if min_age_seconds is None else min_age_seconds,
        MIN_AGE_RANGE,
    )
    limit = _clamp(settings.recording_retry_limit if limit is None else limit, LIMIT_RANGE)
    cutoff = datetime.now() - timedelta(seconds=min_age)

    with Session(engine) as session:
        query = (
            select(CallRecord)
            .where(CallRecord.is_processing.is_(True))
            .where(CallRecord.updated_at < cutoff)
        )
        if owner_id:
            query = query.where(CallRecord.owner_id == owner_id)
        records = session.exec(query.order_by(CallRecord.updated_at.asc()).limit(limit)).all()

        if not records:
            logger.debug("没有需要探测的录音")
            return {"success": True, "checked": 0, "updated": 0, "still_processing": 0}

        owners = {r.owner_id for r in records}
        integrations = session.exec(
            select(DialerIntegration).where(DialerIntegration.owner_id.in_(owners))
        ).all()
        base_urls = {i.owner_id: clean_base_url(i.server_url) for i in integrations}

        targets = [
            (
                r.id,
                r.recording_url,
                base_urls.get(r.owner_id) or base_url_from_recording(r.recording_url),
                r.lead_id,
                r.call_time,
            )
            for r in records
        ]

    logger.info(f"开始探测录音: {len(targets)} 条, min_age={min_age}s")

    async with probe_client() as client:
        results = await gather_in_waves(
            [locate_recording(client, url, base, lead, call_time) for _, url, base, lead, call_time in targets],
            concurrency=PROBE_CONCURRENCY,
        )

    updated = 0
    resolved_by_owner: Counter[str] = Counter()
    with Session(engine) as session:
        now = datetime.now()
        for (record_id, *_), found in zip(targets, results):
            record = session.get(CallRecord, record_id)
            if record is None:
                continue

            if isinstance(found, BaseException):
                logger.warning(f"录音探测异常: record={record_id}, {found}")
                found = None

            if found:
                record.recording_url = found
                record.is_processing = False
                record.analysis_state = AnalysisState.QUEUED.value
                record.failure_kind = None
                record.summary = PENDING_ANALYSIS
                updated += 1
                resolved_by_owner[record.owner_id] += 1
                logger.info(f"录音已就绪: record={record_id}, url={found}")
            elif record.summary == RECORDING_NOT_AVAILABLE:
                record.summary = RECORDING_STILL_PROCESSING

            record.touch(now)
            session.add(record)
        session.commit()

    still_processing = len(targets) - updated
    logger.info(f"录音探测完成: 检查 {len(targets)}, 就绪 {updated}, 仍在处理 {still_processing}")

    for owner, count in resolved_by_owner.items():
        fire_trigger(trigger, owner, count)

    return {
        "success": True,
        "checked": len(targets),
        "updated": updated,
        "still_processing": still_processing,
    }
