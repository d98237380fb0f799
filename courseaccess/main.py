from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from courseaccess.core.config import settings
from courseaccess.core.database import init_database, close_database, create_all_tables
from courseaccess.core.exceptions import BusinessException
from courseaccess.services.common_cache import resource_cache
from courseaccess.api.health import router as health_router
from courseaccess.api.pricing import router as pricing_router
from courseaccess.api.access import router as access_router
from courseaccess.api.seats import router as seats_router
from courseaccess.api.exceptions import (
    validation_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler
)

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动课程访问与定价服务")

    await init_database()
    logger.info("数据库初始化成功")

    if settings.is_testing:
        await create_all_tables()

    # 缓存不可用时仍可启动，资源树直接读库
    try:
        await resource_cache.init_redis()
    except Exception as e:
        logger.warning(f"Redis不可用，资源树缓存已禁用: {e}")
        await resource_cache.close_redis()

    logger.info("应用启动完成")

    yield

    logger.info("正在关闭应用")
    await close_database()
    await resource_cache.close_redis()
    logger.info("应用关闭完成")


# 创建FastAPI应用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="课程访问控制与定价服务 - 价格计算、权益台账、团队席位与内容访问判定",
    debug=settings.debug,
    lifespan=lifespan
)

# CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(health_router)
app.include_router(pricing_router)
app.include_router(access_router)
app.include_router(seats_router)

# 注册异常处理器
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(BusinessException, business_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def root():
    """根路径"""
    return {
        "message": f"欢迎使用 {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
    }


def run() -> None:
    uvicorn.run(
        "courseaccess.main:app",
        host="0.0.0.0",
        port=8002,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
