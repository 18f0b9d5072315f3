"""拨号器 API 基础配置"""

import httpx

from callsync.config import settings

# non_agent_api 接口路径
NON_AGENT_API_PATH = "/vicidial/non_agent_api.php"


def get_common_headers() -> dict[str, str]:
    """获取通用请求头

    Returns:
        dict: 通用请求头字典
    """
    return {"User-Agent": settings.dialer_user_agent}


def clean_base_url(server_url: str) -> str:
    """清理服务器地址

    去掉末尾斜杠以及 /vicidial 之后的路径，得到服务器根地址。

    Args:
        server_url: 用户配置的服务器地址

    Returns:
        str: 服务器根地址
    """
    return server_url.strip().rstrip("/").split("/vicidial")[0]


def create_client(
    base_url: str,
    timeout: float | None = None,
) -> httpx.AsyncClient:
    """创建拨号器 API 异步客户端

    Args:
        base_url: 服务器根地址
        timeout: 超时时间（秒），默认使用配置值

    Returns:
        httpx.AsyncClient: 异步HTTP客户端
    """
    return httpx.AsyncClient(
        base_url=base_url,
        timeout=httpx.Timeout(timeout or settings.dialer_request_timeout),
        verify=False,  # 拨号器多为自签名证书
        headers=get_common_headers(),
    )
