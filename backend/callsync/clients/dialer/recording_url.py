"""录音地址工具

VICIdial 录音先以 .wav 写入 /RECORDINGS/，随后由服务器转码为
/RECORDINGS/MP3/ 下的 .mp3 文件。前端播放器只支持 mp3，因此这里的
地址统一指向 MP3 目录，并且统一使用 http://（很多拨号器只开放 http）。
"""

import re
from datetime import datetime

RECORDINGS_DIR = "/RECORDINGS/"
MP3_DIR = "/RECORDINGS/MP3/"

_WAV_SUFFIX = re.compile(r"\.wav$", re.IGNORECASE)
_MP3_SUFFIX = re.compile(r"\.mp3$", re.IGNORECASE)


def to_http(url: str) -> str:
    """https:// 降级为 http://"""
    if url.startswith("https://"):
        return "http://" + url[len("https://") :]
    return url


def is_mp3(url: str) -> bool:
    return bool(_MP3_SUFFIX.search(url))


def toggle_folder(url: str) -> str | None:
    """在 /RECORDINGS/ 与 /RECORDINGS/MP3/ 之间切换，不含录音目录时返回 None"""
    if MP3_DIR in url:
        return url.replace(MP3_DIR, RECORDINGS_DIR, 1)
    if RECORDINGS_DIR in url:
        return url.replace(RECORDINGS_DIR, MP3_DIR, 1)
    return None


def toggle_extension(url: str) -> str | None:
    """在 .mp3 与 .wav 之间切换扩展名"""
    if _WAV_SUFFIX.search(url):
        return _WAV_SUFFIX.sub(".mp3", url)
    if _MP3_SUFFIX.search(url):
        return _MP3_SUFFIX.sub(".wav", url)
    return None


def build_recording_name(call_time: datetime, lead_id: str) -> str:
    """按 VICIdial 命名规则生成录音文件名（不含扩展名）

    例如 20250101-093015_5566-all
    """
    return f"{call_time.strftime('%Y%m%d-%H%M%S')}_{lead_id}-all"


def synthesize_recording_url(base_url: str, call_time: datetime, lead_id: str) -> str:
    """根据通话时间和线索ID拼出 MP3 录音地址"""
    base = to_http(base_url.rstrip("/"))
    return f"{base}{MP3_DIR}{build_recording_name(call_time, lead_id)}.mp3"


def normalize_recording_url(location: str, base_url: str) -> tuple[str | None, bool]:
    """规范化拨号器返回的录音地址

    - 仅有文件名时放到 {base}/RECORDINGS/ 下
    - https:// 降级为 http://
    - 原始目录 /RECORDINGS/ 改写为 /RECORDINGS/MP3/，.wav 改为 .mp3

    Args:
        location: 拨号器返回的 location / filename 字段
        base_url: 服务器根地址

    Returns:
        tuple: (规范化后的地址, 是否发生了改写)，location 为空时返回 (None, False)
    """
    location = (location or "").strip()
    if not location:
        return None, False

    url = location
    if not url.lower().startswith(("http://", "https://")):
        url = f"{base_url.rstrip('/')}{RECORDINGS_DIR}{url.lstrip('/')}"
    url = to_http(url)

    if RECORDINGS_DIR in url and MP3_DIR not in url:
        url = url.replace(RECORDINGS_DIR, MP3_DIR, 1)
        url = _WAV_SUFFIX.sub(".mp3", url)
        return url, True

    return url, False


def build_url_variants(
    original_url: str | None,
    base_url: str | None = None,
    lead_id: str | None = None,
    call_time: datetime | None = None,
) -> list[str]:
    """生成待探测的录音地址候选列表（已去重，mp3 候选在前）

    顺序:
        1. 原地址为 .wav 时：对应的 .mp3，以及该 .mp3 切换目录后的地址
        2. 原地址
        3. 原地址切换目录
        4. 原地址切换扩展名
        5. 按 {时间}_{线索ID}-all.{mp3|wav} 在两个目录下重建

    Args:
        original_url: 当前保存的录音地址
        base_url: 服务器根地址（重建地址时使用）
        lead_id: 线索ID
        call_time: 通话开始时间

    Returns:
        list[str]: 候选地址列表
    """
    variants: list[str] = []

    def add(url: str | None) -> None:
        if url and url not in variants:
            variants.append(url)

    if original_url:
        original = to_http(original_url.strip())
        if _WAV_SUFFIX.search(original):
            twin = _WAV_SUFFIX.sub(".mp3", original)
            add(twin)
            add(toggle_folder(twin))
        add(original)
        add(toggle_folder(original))
        add(toggle_extension(original))

    if base_url and lead_id and call_time:
        base = to_http(base_url.rstrip("/"))
        name = build_recording_name(call_time, lead_id)
        for ext in ("mp3", "wav"):
            for folder in (MP3_DIR, RECORDINGS_DIR):
                add(f"{base}{folder}{name}.{ext}")

    return variants


def base_url_from_recording(url: str | None) -> str | None:
    """从录音地址中截取服务器根地址（/RECORDINGS/ 之前的部分）"""
    if not url or RECORDINGS_DIR not in url:
        return None
    return url.split(RECORDINGS_DIR, 1)[0]
