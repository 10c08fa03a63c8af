"""
配置模块 (Configuration Module)
==============================

从环境变量和 .env 文件加载应用配置，包括本地存储路径、远端收集器地址、
同步超时与拉取重试等设置。
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """
    应用配置类，继承自 Pydantic BaseSettings，支持从环境变量自动加载。

    属性:
        STORE_PATH: 本地会话存储的 sqlite 文件路径（可为 ":memory:"）
        COLLECTOR_BASE_URL: 远端收集器基础 URL
        COLLECTOR_FORM_DATA_PATH: 表单数据接口路径，批量拉取为 "<path>/all"
        SYNC_TIMEOUT: 每次同步请求的超时秒数
        FETCH_RETRY_*: 批量拉取（幂等 GET）的重试配置
        HTML_PARSER: BeautifulSoup 使用的解析器
        LOG_LEVEL: formharvest 日志器默认级别
        COLLECTOR_DB_PATH: 参考收集器服务的 sqlite 文件路径
    """
    STORE_PATH: str = "formharvest.db"
    COLLECTOR_BASE_URL: str = "http://localhost:3000"
    COLLECTOR_FORM_DATA_PATH: str = "/api/form-data"
    SYNC_TIMEOUT: float = 30.0
    FETCH_RETRY_MAX_ATTEMPTS: int = 3
    FETCH_RETRY_MIN_WAIT_SECONDS: float = 1.0
    FETCH_RETRY_MAX_WAIT_SECONDS: float = 5.0
    HTML_PARSER: str = "lxml"
    LOG_LEVEL: str = "INFO"
    COLLECTOR_DB_PATH: str = "collector.db"

    @field_validator("COLLECTOR_BASE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """
        校验 COLLECTOR_BASE_URL 非空，并去掉末尾的斜杠。
        """
        if v is None or v.strip() == "":
            raise ValueError(
                "COLLECTOR_BASE_URL is not set or empty. "
                "Please check your .env file and ensure COLLECTOR_BASE_URL is configured."
            )
        return v.strip().rstrip("/")

    @field_validator("SYNC_TIMEOUT")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """同步超时必须为正数，否则同步可能无限挂起。"""
        if v <= 0:
            raise ValueError("SYNC_TIMEOUT must be a positive number of seconds")
        return v

    @property
    def form_data_url(self) -> str:
        return self.COLLECTOR_BASE_URL + self.COLLECTOR_FORM_DATA_PATH

    @property
    def fetch_all_url(self) -> str:
        return self.form_data_url.rstrip("/") + "/all"

    class Config:
        env_file = ".env"
        case_sensitive = False


# 全局单例，避免重复加载配置
_settings_instance = None


def get_settings() -> Settings:
    """
    获取配置单例。

    首次调用时创建 Settings 实例并缓存，后续调用返回同一实例。
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance


def reset_settings() -> None:
    """重置配置单例，用于测试或环境变量变更后重新加载。"""
    global _settings_instance
    _settings_instance = None
