from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings
from typing import Optional, Any


class Settings(BaseSettings):
    # Run mode: "default" runs the event server and the API, "writeonly" only
    # the event server, "readonly" only the API
    RUN_MODE: str = "default"

    # Database
    DB_USER: str = "user"
    DB_PASSWORD: str = "password"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ordinals"
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Any:
        if isinstance(v, str):
            return v
        values = info.data
        return (
            f"postgresql+psycopg2://{values.get('DB_USER')}:{values.get('DB_PASSWORD')}@"
            f"{values.get('DB_HOST')}:{values.get('DB_PORT')}/{values.get('DB_NAME')}"
        )

    # Performance
    DB_POOL_SIZE: int = 5

    # API
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 3000
    API_DEFAULT_LIMIT: int = 20
    API_MAX_LIMIT: int = 60

    # Event server (receives chainhook payloads)
    EVENT_HOST: str = "0.0.0.0"  # nosec B104
    EVENT_PORT: int = 3099
    EXTERNAL_HOSTNAME: str = "127.0.0.1"

    # Chainhook node
    CHAINHOOK_NODE_RPC_HOST: str = "127.0.0.1"
    CHAINHOOK_NODE_RPC_PORT: int = 20456
    CHAINHOOK_NODE_AUTH_TOKEN: str = "change-me"
    CHAINHOOK_AUTO_PREDICATE_REGISTRATION: bool = True
    BITCOIN_NETWORK: str = "mainnet"

    # Indexing settings
    START_BLOCK_HEIGHT: int = 767430  # First inscription block
    VERIFY_SATPOINT_CONTINUITY: bool = True

    # Monitoring
    LOG_LEVEL: str = "INFO"

    # Error handling
    MAX_RETRIES: int = 3
    RETRY_DELAY: int = 5

    # Cache Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_ENABLED: bool = True
    CACHE_TTL: int = 300

    # Indexer Version
    INDEXER_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
