"""FastAPI 应用入口"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from callsync.api.v1 import router as api_v1_router
from callsync.config import settings
from callsync.database import init_db
from callsync.schemas.response import ResponseModel


def setup_pipeline_logging():
    """配置流水线日志文件"""
    if not settings.pipeline_log_file:
        return

    log_dir = Path(settings.pipeline_log_file).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        settings.pipeline_log_file,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}",
        level="DEBUG" if settings.debug else "INFO",
    )
    logger.info("流水线日志配置完成")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理

    后台任务由 Celery Worker 和 Beat 独立运行：
    - celery -A callsync.celery_app worker --loglevel=info
    - celery -A callsync.celery_app beat --loglevel=info
    """
    setup_pipeline_logging()

    logger.info(f"{settings.app_name} v{settings.app_version} 启动, 数据库: {settings.database_url.split(':', 1)[0]}")
    init_db()
    logger.info("数据表已就绪")

    yield

    from callsync.utils.async_helper import shutdown_executor
    from callsync.utils.redis_client import close_redis_client

    shutdown_executor()
    close_redis_client()
    logger.info("应用已关闭")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="拨号器通话录音同步与 AI 分析 API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# 全局异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """未处理异常统一返回 500 响应"""
    logger.exception(f"未处理异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=ResponseModel.error(code=500, message=str(exc)).model_dump(),
    )


app.include_router(api_v1_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """根路径"""
    return ResponseModel.success(
        data={"name": settings.app_name, "version": settings.app_version},
        message="拨号器录音分析 API",
    )
