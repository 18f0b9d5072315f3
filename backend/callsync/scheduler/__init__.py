"""客户端调度器：实时同步与自动转写"""

from callsync.scheduler.auto_transcription import AutoTranscriptionTrigger
from callsync.scheduler.live_sync import HealthStatus, LiveSyncSupervisor, compute_health

__all__ = [
    "AutoTranscriptionTrigger",
    "HealthStatus",
    "LiveSyncSupervisor",
    "compute_health",
]
