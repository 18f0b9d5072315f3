"""VICIdial non_agent_api 客户端

提供录音查询（recording_lookup）和连接测试（version）接口。
"""

import httpx
from loguru import logger

from callsync.clients.dialer.base import NON_AGENT_API_PATH, clean_base_url, create_client
from callsync.config import settings


class DialerApiException(Exception):
    """拨号器 API 异常"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class VicidialClient:
    """VICIdial non_agent_api 客户端

    使用示例:
        ```python
        client = VicidialClient(
            server_url="http://dialer.example.com/vicidial/",
            api_user="apiuser",
            api_password="secret",
        )

        # 查询某坐席某天的录音（管道分隔文本）
        text = await client.recording_lookup(agent_user="1001", date="2025-01-01")
        ```
    """

    def __init__(
        self,
        server_url: str,
        api_user: str,
        api_password: str,
        source: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = clean_base_url(server_url)
        self.api_user = api_user
        self.api_password = api_password
        self.source = source or settings.dialer_source
        self.timeout = timeout

    def _mask(self, text: str) -> str:
        """日志中隐藏密码"""
        if self.api_password:
            return text.replace(self.api_password, "***")
        return text

    async def _get(self, params: dict[str, str]) -> str:
        """发送 GET 请求并返回响应文本

        Raises:
            DialerApiException: 网络错误或非 200 响应
        """
        query = {
            "source": self.source,
            "user": self.api_user,
            "pass": self.api_password,
            **params,
        }
        try:
            async with create_client(self.base_url, self.timeout) as client:
                response = await client.get(NON_AGENT_API_PATH, params=query)
        except httpx.TimeoutException as e:
            raise DialerApiException(f"拨号器请求超时: {e}") from e
        except httpx.RequestError as e:
            raise DialerApiException(self._mask(f"拨号器请求失败: {e}")) from e

        if response.status_code != 200:
            raise DialerApiException(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        return response.text

    async def recording_lookup(self, agent_user: str, date: str) -> str:
        """查询录音列表

        Args:
            agent_user: 坐席ID
            date: 日期 "YYYY-MM-DD"

        Returns:
            str: 换行分隔、每行管道分隔的原始响应文本

        Raises:
            DialerApiException: 请求失败
        """
        logger.info(f"查询拨号器录音: agent={agent_user}, date={date}")
        text = await self._get(
            {
                "function": "recording_lookup",
                "stage": "pipe",
                "agent_user": agent_user,
                "date": date,
                "duration": "Y",
            }
        )
        logger.debug(f"录音查询响应 ({date}, {agent_user}) 长度 {len(text)}: {text[:200]}")
        return text

    async def version(self) -> str:
        """获取拨号器版本（用于连接测试）

        Returns:
            str: 原始响应文本，成功时包含 "VERSION:"
        """
        logger.info(f"测试拨号器连接: {self.base_url}")
        return await self._get({"function": "version"})
