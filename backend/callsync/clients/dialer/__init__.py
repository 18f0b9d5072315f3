"""VICIdial 拨号器客户端"""

from callsync.clients.dialer.client import DialerApiException, VicidialClient
from callsync.clients.dialer.parser import DialerRecording, format_duration, parse_recording_lookup

__all__ = [
    "DialerApiException",
    "DialerRecording",
    "VicidialClient",
    "format_duration",
    "parse_recording_lookup",
]
