from fastapi import APIRouter
import logging

from courseaccess.core.config import settings
from courseaccess.core.database import database_service
from courseaccess.services.common_cache import resource_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """数据库与缓存连接健康检查"""
    pg_status = await database_service.health_check()
    cache_status = await resource_cache.health_check()

    health_status = {
        "database": pg_status["status"] == "healthy",
        # 缓存不可用时资源树直接读库，不影响整体状态
        "cache": cache_status["status"] == "healthy",
        "overall": pg_status["status"] == "healthy",
        "details": {
            "database": pg_status["message"],
            "cache": cache_status["message"]
        }
    }

    if not health_status["overall"]:
        logger.warning(f"数据库连接检查失败: {pg_status['message']}")
    return health_status
