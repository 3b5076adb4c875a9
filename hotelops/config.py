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
    APP_NAME: str = "HotelOps"
    DEBUG: bool = False

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./hotelops.db"
    DB_TIMEOUT_SECONDS: float = 5.0  # 单次存储调用的超时（SQLite busy timeout）

    # JWT 配置
    SECRET_KEY: str = "hotelops-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480
    GUEST_SESSION_MINUTES: int = 720  # 客人门户会话有效期

    # 业务配置
    ACCESS_CODE_LENGTH: int = 6
    ACTIVITY_FEED_LIMIT: int = 50

    CORS_ORIGINS: List[str] = ["*"]

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# 全局设置实例
settings = Settings()
