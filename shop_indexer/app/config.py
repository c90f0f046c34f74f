"""Config file."""
from functools import lru_cache
from pathlib import Path
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SHOP_ABI_PATH = Path(__file__).resolve().parent / "registry" / "abi" / "TokenShop.json"


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("shop-indexer", alias="PROJECT_NAME")

    # DATABASE
    postgres_user: str | None = Field(None, alias="POSTGRES_USER")
    postgres_password: SecretStr | None = Field(None, alias="POSTGRES_PASSWORD")
    postgres_server: str | None = Field(None, alias="POSTGRES_SERVER")
    postgres_port: int = Field(5432, alias="POSTGRES_PORT")
    postgres_db: str | None = Field(None, alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    sync_database_url: str | None = Field(None, alias="SYNC_DATABASE_URL")

    # CHAIN
    rpc_url: str = Field("http://127.0.0.1:8545", alias="RPC_URL")
    shop_address: str = Field(..., alias="SHOP_ADDRESS")
    shop_abi_path: Path = Field(DEFAULT_SHOP_ABI_PATH, alias="SHOP_ABI_PATH")
    rpc_timeout_seconds: float = Field(30.0, alias="RPC_TIMEOUT_SECONDS")
    log_block_batch_size: int = Field(10_000, alias="LOG_BLOCK_BATCH_SIZE")
    token_decimals: int = Field(18, alias="TOKEN_DECIMALS")

    # SCHEDULER
    sync_interval_seconds: int = Field(0, alias="SYNC_INTERVAL_SECONDS")

    @field_validator("shop_address")
    @classmethod
    def check_shop_address(cls, value: str) -> str:
        v = value.strip()
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError(f"SHOP_ADDRESS is not a 20-byte hex address: {value!r}")
        int(v, 16)
        return v

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "Settings":
        if self.database_url and self.sync_database_url:
            return self

        if not all(
            (self.postgres_user, self.postgres_password, self.postgres_server, self.postgres_db)
        ):
            if not self.database_url:
                raise ValueError(
                    "Either DATABASE_URL or POSTGRES_USER/PASSWORD/SERVER/DB must be set"
                )
            return self

        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        if not self.sync_database_url:
            self.sync_database_url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return self

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
