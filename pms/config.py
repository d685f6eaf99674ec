"""
应用配置
从环境变量 / .env 读取配置
"""
from typing import List
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "Branch PMS"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./pms.db"

    # JWT 配置
    SECRET_KEY: str = "pms-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24 * 7

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # 实时推送：WebSocket 升级路径（默认挂在根路径）
    WS_PATH: str = "/"

    # 客户端同步参数（秒）
    SYNC_POLL_INTERVAL: float = 30.0
    SYNC_DEV_POLL_INTERVAL: float = 5.0
    WS_RECONNECT_DELAY: float = 3.0
    WS_ERROR_RETRY_DELAY: float = 5.0

    # 初始超级管理员（空库启动时创建）
    SEED_ADMIN_EMAIL: str = "admin@hotel.local"
    SEED_ADMIN_PASSWORD: str = "admin123"

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
