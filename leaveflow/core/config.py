import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()

class Config(BaseModel):
    app_name: str = "Leave Approval Service"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./leaveflow.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"
    actor_id_header: str = "X-Actor-Id"

    # CORS — comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: [
            o.strip()
            for o in os.getenv(
                "CORS_ORIGINS",
                "http://localhost:3000,http://127.0.0.1:3000",
            ).split(",")
            if o.strip()
        ]
    )

    # Workflow
    decision_retry_attempts: int = int(os.getenv("DECISION_RETRY_ATTEMPTS", "3"))
    max_carry_forward_days: float = float(os.getenv("MAX_CARRY_FORWARD_DAYS", "5"))
    seed_default_policies: bool = os.getenv("SEED_DEFAULT_POLICIES", "true").lower() == "true"

settings = Config()

_logger = logging.getLogger(__name__)
if settings.decision_retry_attempts < 1:
    raise RuntimeError("FATAL: DECISION_RETRY_ATTEMPTS must be at least 1.")
if settings.environment == "production" and settings.database_url.startswith("sqlite"):
    _logger.warning("SQLite in production: SELECT .. FOR UPDATE is a no-op, transitions rely on compare-and-set only.")
