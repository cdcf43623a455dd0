import logging
import os
import secrets
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = os.path.join(os.getcwd(), "tweeter.db")
DEFAULT_TOKEN_TTL_SECONDS = 3600
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseModel):
    sqlite_db: str = Field(DEFAULT_DB_PATH, description="Path to the SQLite database file")
    secret_or_key: str = Field(..., description="Symmetric secret used to sign login tokens")
    token_ttl_seconds: int = Field(DEFAULT_TOKEN_TTL_SECONDS, ge=1, description="Token lifetime")
    environment: str = Field("development", description="'production' disables the CSRF cookie")
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Build Settings from the environment (and a .env file, if present)."""
    load_dotenv()
    secret: Optional[str] = os.getenv("SECRET_OR_KEY")
    if not secret:
        # Tokens issued with a generated secret do not survive a restart.
        logger.warning("SECRET_OR_KEY is not set; using a random per-process secret")
        secret = secrets.token_hex(32)
    return Settings(
        sqlite_db=os.getenv("SQLITE_DB", DEFAULT_DB_PATH),
        secret_or_key=secret,
        token_ttl_seconds=int(os.getenv("TOKEN_TTL_SECONDS", str(DEFAULT_TOKEN_TTL_SECONDS))),
        environment=os.getenv("APP_ENV", "development"),
        cors_allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(level.upper())
