"""拨号器录音同步服务

按 (日期, 坐席) 逐一调用 recording_lookup，解析返回的录音列表，
去重后批量写入 call_records，最后触发 AI 转写。
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

from loguru import logger
from sqlalchemy import insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from callsync.clients.dialer import DialerApiException, VicidialClient, parse_recording_lookup
from callsync.clients.dialer.parser import DialerRecording
from callsync.clients.dialer.recording_url import normalize_recording_url, synthesize_recording_url
from callsync.config import settings
from callsync.database import get_engine
from callsync.models.call_record import AnalysisState, CallRecord, CallStatus, UploadSource
from callsync.models.dialer_integration import DialerIntegration
from callsync.services.state_marker import PENDING_ANALYSIS, PENDING_TRANSCRIPTION

EXTERNAL_ID_PREFIX = "VICI"
IMPORT_CAMPAIGN_NAME = "VICIdial Import"

NO_INTEGRATION = "No VICIdial integration configured"
INTEGRATION_DISABLED = "Integration is disabled"
AGENT_REQUIRED = "Agent User is required for syncing recordings. Please configure it in Integrations settings."

# 触发转写: (owner_id, 待转写数量)
TranscriptionTrigger = Callable[[str, int], None]


class DialerConfigError(Exception):
    """拨号器集成配置错误"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def enqueue_transcription(owner_id: str, count: int) -> None:
    """通过 Celery 异步触发批量转写"""
    if not settings.celery_broker:
        logger.info(f"Celery 未配置，跳过自动转写触发: owner={owner_id}, count={count}")
        return

    from callsync.tasks.pipeline_tasks import transcribe_pending_task

    transcribe_pending_task.delay(limit=count, owner_id=owner_id)
    logger.info(f"已触发自动转写: owner={owner_id}, limit={count}")


def fire_trigger(trigger: TranscriptionTrigger | None, owner_id: str, count: int) -> None:
    """触发转写，失败只记录日志"""
    if count <= 0:
        return
    try:
        (trigger or enqueue_transcription)(owner_id, count)
    except Exception as e:
        logger.warning(f"触发自动转写失败: owner={owner_id}, error={e}")


def get_integration(session: Session, owner_id: str) -> DialerIntegration | None:
    """获取用户的 VICIdial 集成配置"""
    return session.exec(
        select(DialerIntegration)
        .where(DialerIntegration.owner_id == owner_id)
        .where(DialerIntegration.dialer_type == "vicidial")
    ).first()


def _require_integration(session: Session, owner_id: str) -> DialerIntegration:
    integration = get_integration(session, owner_id)
    if integration is None:
        raise DialerConfigError(NO_INTEGRATION)
    if not integration.is_active:
        raise DialerConfigError(INTEGRATION_DISABLED)
    return integration


def _to_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return datetime.strptime(value, "%Y-%m-%d").date()


def iter_dates(date_from: date, date_to: date) -> list[date]:
    """闭区间内的所有日期"""
    days = (date_to - date_from).days
    return [date_from + timedelta(days=i) for i in range(days + 1)]


def build_row(owner_id: str, recording: DialerRecording, base_url: str) -> dict[str, Any]:
    """拨号器录音 -> call_records 行数据"""
    url, rewritten = normalize_recording_url(recording.location, base_url)
    synthesized = False
    if url is None and recording.lead_id:
        url = synthesize_recording_url(base_url, recording.call_time, recording.lead_id)
        synthesized = True

    now = datetime.now()
    return {
        "owner_id": owner_id,
        "external_id": f"{EXTERNAL_ID_PREFIX}-{recording.recording_id}",
        "call_time": recording.call_time,
        "caller_id": recording.lead_id or "unknown",
        "lead_id": recording.lead_id or None,
        "duration": recording.duration,
        "campaign_name": IMPORT_CAMPAIGN_NAME,
        "agent_name": recording.agent_user or None,
        "upload_source": UploadSource.DIALER.value,
        "recording_url": url,
        # 改写或拼出来的地址尚未确认可播放，交给录音探测
        "is_processing": rewritten or synthesized,
        "status": CallStatus.PENDING.value,
        "sub_disposition": "",
        "reason": "",
        "summary": PENDING_ANALYSIS,
        "transcript": PENDING_TRANSCRIPTION,
        "analysis_state": AnalysisState.QUEUED.value,
        "failure_kind": None,
        "created_at": now,
        "updated_at": now,
    }


def insert_ignore(session: Session, rows: list[dict[str, Any]]) -> int:
    """批量插入，(owner_id, external_id) 冲突的行忽略

    Returns:
        int: 实际插入行数
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(CallRecord).values(rows).on_conflict_do_nothing(
            index_elements=["owner_id", "external_id"]
        )
    elif dialect == "sqlite":
        stmt = sqlite_insert(CallRecord).values(rows).on_conflict_do_nothing(
            index_elements=["owner_id", "external_id"]
        )
    else:
        stmt = insert(CallRecord).values(rows)

    result = session.exec(stmt)
    rowcount = result.rowcount
    return rowcount if rowcount >= 0 else len(rows)


async def sync_recordings(
    owner_id: str,
    date_from: date | str | None = None,
    date_to: date | str | None = None,
    agent_ids: list[str] | None = None,
    *,
    engine: Engine | None = None,
    trigger: TranscriptionTrigger | None = None,
) -> dict[str, Any]:
    """同步拨号器录音

    Args:
        owner_id: 用户ID
        date_from: 开始日期（含），默认 7 天前
        date_to: 结束日期（含），默认今天
        agent_ids: 坐席列表，默认使用集成配置中的列表
        engine: 数据库引擎
        trigger: 转写触发函数，默认通过 Celery 投递

    Returns:
        dict: {success, message, total, inserted, skipped, failed_lookups, date_range}
            配置错误时返回 {success: False, error}
    """
    engine = engine or get_engine()

    with Session(engine) as session:
        try:
            integration = _require_integration(session, owner_id)
        except DialerConfigError as e:
            logger.warning(f"拨号器同步跳过: owner={owner_id}, {e.message}")
            return {"success": False, "error": e.message}

        agents = [str(a).strip() for a in (agent_ids or integration.agent_ids or []) if str(a).strip()]
        if not agents:
            logger.warning(f"拨号器同步跳过: owner={owner_id}, 未配置坐席")
            return {"success": False, "error": AGENT_REQUIRED}

        client = VicidialClient(
            server_url=integration.server_url,
            api_user=integration.api_user,
            api_password=integration.api_password,
        )
        integration_id = integration.id

    end = _to_date(date_to) or date.today()
    start = _to_date(date_from) or end - timedelta(days=settings.dialer_default_sync_days)
    if start > end:
        return {"success": False, "error": "date_from must not be after date_to"}

    date_range = {"from": start.isoformat(), "to": end.isoformat()}
    logger.info(
        f"开始同步拨号器录音: owner={owner_id}, {date_range['from']} ~ {date_range['to']}, "
        f"坐席 {len(agents)} 个"
    )

    # 1. 逐个 (日期, 坐席) 查询
    candidates: dict[str, dict[str, Any]] = {}
    total = 0
    failed_lookups = 0
    for day in iter_dates(start, end):
        day_str = day.isoformat()
        for agent in agents:
            try:
                text = await client.recording_lookup(agent_user=agent, date=day_str)
                recordings = parse_recording_lookup(text, day_str, agent)
            except DialerApiException as e:
                failed_lookups += 1
                logger.warning(f"录音查询失败 ({day_str}, {agent}): {e.message}")
                continue
            except Exception as e:
                failed_lookups += 1
                logger.warning(f"录音解析失败 ({day_str}, {agent}): {e}")
                continue

            total += len(recordings)
            for recording in recordings:
                row = build_row(owner_id, recording, client.base_url)
                candidates.setdefault(row["external_id"], row)

    logger.info(f"拨号器返回 {total} 条录音，去重后 {len(candidates)} 条")

    # 2. 去重检查（一次查询）
    inserted = 0
    with Session(engine) as session:
        if candidates:
            existing = set(
                session.exec(
                    select(CallRecord.external_id)
                    .where(CallRecord.owner_id == owner_id)
                    .where(CallRecord.external_id.in_(list(candidates)))
                ).all()
            )
            new_rows = [row for ext_id, row in candidates.items() if ext_id not in existing]
            logger.info(f"已存在 {len(existing)} 条，需要新增 {len(new_rows)} 条")

            # 3. 分批写入
            chunk_size = settings.insert_chunk_size
            for i in range(0, len(new_rows), chunk_size):
                batch = new_rows[i : i + chunk_size]
                count = insert_ignore(session, batch)
                session.commit()
                inserted += count
                logger.debug(f"批次 {i // chunk_size + 1}: 插入 {count}, 跳过 {len(batch) - count}")

        integration = session.get(DialerIntegration, integration_id)
        if integration is not None:
            integration.last_sync_at = datetime.now()
            session.add(integration)
            session.commit()

    skipped = total - inserted
    logger.info(
        f"拨号器同步完成: owner={owner_id}, 总计 {total}, 新增 {inserted}, "
        f"跳过 {skipped}, 查询失败 {failed_lookups}"
    )

    # 4. 触发转写
    fire_trigger(trigger, owner_id, inserted)

    return {
        "success": True,
        "message": f"Synced {inserted} new recordings ({skipped} skipped)",
        "total": total,
        "inserted": inserted,
        "skipped": skipped,
        "failed_lookups": failed_lookups,
        "date_range": date_range,
    }


async def check_connection(owner_id: str, *, engine: Engine | None = None) -> dict[str, Any]:
    """测试拨号器连接

    Returns:
        dict: {success, message, version} 或 {success: False, error}
    """
    engine = engine or get_engine()
    with Session(engine) as session:
        integration = get_integration(session, owner_id)
        if integration is None:
            return {"success": False, "error": NO_INTEGRATION}
        client = VicidialClient(
            server_url=integration.server_url,
            api_user=integration.api_user,
            api_password=integration.api_password,
        )

    try:
        text = await client.version()
    except DialerApiException as e:
        logger.warning(f"拨号器连接测试失败: owner={owner_id}, {e.message}")
        return {"success": False, "error": e.message}

    if "VERSION:" in text:
        version = text.strip().splitlines()[0]
        logger.info(f"拨号器连接测试成功: owner={owner_id}, {version}")
        return {"success": True, "message": "Connection successful", "version": version}

    logger.warning(f"拨号器连接测试返回异常内容: {text[:200]}")
    return {"success": False, "error": text.strip()[:200] or "Unexpected response from dialer"}
