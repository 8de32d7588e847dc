# src/config.py
import os
from dataclasses import dataclass

from dotenv import load_dotenv


def get_env(key: str, default: str) -> str:
    """환경 변수를 읽고, 비어 있으면 기본값을 반환합니다."""
    value = os.getenv(key)
    if not value:
        return default
    return value


@dataclass(frozen=True)
class Config:
    """
    서비스 전체 설정 값.
    프로세스 시작 시 한 번 생성되어 각 구성 요소에 명시적으로 전달됩니다.
    """
    registry_url: str = "localhost"
    registry_port: str = "5000"
    api_port: int = 8080

    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "registry"
    db_user: str = "postgres"
    db_password: str = "postgres"
    database_url_override: str = ""
    db_connect_timeout: int = 5

    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_timeout: float = 2.0

    jwt_secret: str = "your-secret-key"
    token_ttl_hours: int = 24
    bcrypt_rounds: int = 12
    access_policy: str = ""

    admin_username: str = "admin"
    admin_password: str = "admin"
    admin_email: str = "admin@localhost"

    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def registry_base_url(self) -> str:
        return f"http://{self.registry_url}:{self.registry_port}"


def load_config() -> Config:
    """.env 파일과 환경 변수로부터 설정을 읽어 Config를 생성합니다."""
    load_dotenv()
    return Config(
        registry_url=get_env("REGISTRY_URL", "localhost"),
        registry_port=get_env("REGISTRY_PORT", "5000"),
        api_port=int(get_env("API_PORT", "8080")),
        db_host=get_env("DB_HOST", "localhost"),
        db_port=get_env("DB_PORT", "5432"),
        db_name=get_env("DB_NAME", "registry"),
        db_user=get_env("DB_USER", "postgres"),
        db_password=get_env("DB_PASSWORD", "postgres"),
        database_url_override=get_env("DATABASE_URL", ""),
        db_connect_timeout=int(get_env("DB_CONNECT_TIMEOUT", "5")),
        redis_host=get_env("REDIS_HOST", "localhost"),
        redis_port=int(get_env("REDIS_PORT", "6379")),
        redis_timeout=float(get_env("REDIS_TIMEOUT", "2")),
        jwt_secret=get_env("JWT_SECRET", "your-secret-key"),
        token_ttl_hours=int(get_env("TOKEN_TTL_HOURS", "24")),
        bcrypt_rounds=int(get_env("BCRYPT_ROUNDS", "12")),
        access_policy=get_env("ACCESS_POLICY", ""),
        admin_username=get_env("ADMIN_USERNAME", "admin"),
        admin_password=get_env("ADMIN_PASSWORD", "admin"),
        admin_email=get_env("ADMIN_EMAIL", "admin@localhost"),
        log_level=get_env("LOG_LEVEL", "INFO"),
        log_format=get_env("LOG_FORMAT", "json"),
    )
