"""应用配置管理"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """应用配置"""

    # 应用配置
    app_name: str = "拨号器录音分析"
    app_version: str = "0.1.0"
    debug: bool = True

    # 数据库配置
    database_url: str = "sqlite:///./app.db"

    # API 配置
    api_prefix: str = "/api/v1"

    # 日志配置
    pipeline_log_file: str = "logs/pipeline.log"

    # Redis 配置
    redis_url: str = ""  # Redis 连接 URL，为空时不使用任务锁

    # Celery 配置
    celery_broker_url: str = ""  # 默认使用 redis_url
    celery_result_backend: str = ""  # 默认使用 redis_url
    celery_timezone: str = "UTC"
    celery_task_default_timeout: int = 3600  # 任务锁超时（秒）
    recording_retry_interval: int = 60  # 录音重试任务的 Beat 间隔（秒）

    # 拨号器 (VICIdial) 配置
    dialer_source: str = "AI-Analyzer"  # 请求中的 source 参数
    dialer_user_agent: str = "AI-Audio-Analyzer/1.0"
    dialer_request_timeout: float = 30.0  # 单次查询超时（秒）
    dialer_default_sync_days: int = 7  # 未指定日期范围时同步最近几天
    insert_chunk_size: int = 100  # 批量写入时每批记录数

    # 录音探测配置
    recording_probe_timeout: float = 8.0  # HEAD / Range GET 超时（秒）
    recording_min_age_seconds: int = 60  # 两次探测之间的最小间隔（秒）
    recording_retry_limit: int = 200  # 每轮最多探测的记录数

    # AI 分析服务配置（OpenAI 兼容的 chat/completions 接口）
    ai_api_key: str = ""
    ai_base_url: str = "https://ai.gateway.lovable.dev/v1"
    ai_model: str = "google/gemini-2.5-flash"
    ai_request_timeout: float = 300.0
    audio_fetch_timeout: float = 30.0  # 批量模式下载录音超时（秒）

    # 转写批量任务默认值
    transcribe_default_limit: int = 10
    transcribe_default_concurrency: int = 5

    # 实时同步 / 自动转写（客户端调度器）
    pipeline_api_url: str = "http://localhost:8000/api/v1"
    pipeline_api_timeout: float = 120.0
    live_sync_interval: float = 60.0
    live_health_interval: float = 30.0
    live_healthy_threshold: float = 120.0  # 距上次成功同步小于该值视为健康（秒）
    auto_transcribe_debounce: float = 3.0
    auto_transcribe_concurrency: int = 5

    @property
    def celery_broker(self) -> str:
        """获取 Celery broker URL"""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """获取 Celery result backend URL"""
        return self.celery_result_backend or self.redis_url

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # 忽略额外的环境变量
    )


settings = Settings()
