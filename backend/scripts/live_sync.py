"""实时同步运行脚本

开启实时同步，并在每次同步有新增记录时自动触发批量转写。

用法:
    cd backend
    python -m scripts.live_sync --owner-id user-1

或者指定接口地址:
    python -m scripts.live_sync --owner-id user-1 --api-url http://localhost:8000/api/v1
"""

import argparse
import asyncio
import signal

from loguru import logger

from callsync.clients.pipeline_api import PipelineApiClient
from callsync.scheduler import AutoTranscriptionTrigger, LiveSyncSupervisor


async def run(owner_id: str, api_url: str | None = None) -> None:
    """运行实时同步直到收到退出信号"""
    api = PipelineApiClient(base_url=api_url)

    trigger = AutoTranscriptionTrigger(
        transcribe_batch=lambda limit, concurrency: api.transcribe_pending(
            limit=limit, concurrency=concurrency, owner_id=owner_id
        ),
        transcribe_one=api.transcribe_record,
        notify=lambda message: logger.warning(f"[通知] {message}"),
    )

    def on_synced(result: dict) -> None:
        inserted = result.get("inserted", 0)
        if inserted:
            trigger.signal(inserted)

    supervisor = LiveSyncSupervisor(
        sync_fn=lambda start, end: api.sync_dialer(owner_id, start, end),
        on_synced=on_synced,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await supervisor.start()
    try:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=supervisor.health_interval)
            except asyncio.TimeoutError:
                state = supervisor.state
                logger.info(
                    f"实时同步状态: {state.status.value}, 上次同步 {state.last_sync_at}, "
                    f"错误 {state.last_error or '-'}"
                )
    finally:
        await supervisor.stop()
        await trigger.stop()


def main() -> None:
    parser = argparse.ArgumentParser(description="拨号器实时同步")
    parser.add_argument("--owner-id", required=True, help="用户ID")
    parser.add_argument("--api-url", default=None, help="流水线 API 地址")
    args = parser.parse_args()

    asyncio.run(run(args.owner_id, args.api_url))


if __name__ == "__main__":
    main()
