from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from urllib.parse import quote_plus


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file="coinapi/.env",
        env_file_encoding="utf-8",
        extra="allow",
    )
    # Application
    APP_NAME: str = "Coin Economy API"
    PROJECT_NAME: str = "Coin Economy API"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    # sqlalchemy.engine 로거 레벨 (INFO 이면 실행 SQL 출력)
    SQL_LOG_LEVEL: str = "WARNING"

    # Database
    POSTGRES_HOST: str = ""
    POSTGRES_PORT: int = 5432
    POSTGRES_USERNAME: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DATABASE: str = ""
    POSTGRES_SCHEMA: str = "economy"

    # 직접 지정 시 POSTGRES_* 보다 우선 (테스트/로컬 SQLite 용)
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20

    @property
    def database_url(self) -> str:
        """Construct database URL from individual components"""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        # URL encode the password to handle special characters
        encoded_password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+psycopg2://{self.POSTGRES_USERNAME}:{encoded_password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DATABASE}"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    # Security (토큰 발급은 외부 인증 서비스 담당, 여기서는 검증만 수행)
    SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Accounts
    WALLET_ADDRESS_PATTERN: str = r"^0x[a-fA-F0-9]{40}$"

    # Tournament
    DEFAULT_ENTRY_CURRENCY: str = "EXPERIENCE"
    DEFAULT_PRIZE_CURRENCY: str = "PREMIUM"

    # Referral tree traversal caps
    REFERRAL_TREE_MAX_DEPTH: int = 5
    REFERRAL_MAX_VISITED_NODES: int = 10000

    # Stamina ladder
    STAMINA_NEW_ACCOUNT_DAYS: int = 30
    STAMINA_VETERAN_ACCOUNT_DAYS: int = 90
    STAMINA_NEW_ACCOUNT: int = 2000
    STAMINA_HIGH_EQ: int = 2500
    STAMINA_SINGLE_EQ: int = 1500
    STAMINA_DEFAULT: int = 1600
    STAMINA_BASE: int = 500

    # Notifications (fire-and-forget)
    NOTIFICATIONS_ENABLED: bool = True
    SQS_NOTIFICATION_QUEUE_URL: Optional[str] = None
    AWS_REGION: str = "ap-northeast-2"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    SQS_ENDPOINT_URL: Optional[str] = None


settings = Settings()
