# payout_engine/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./payout_engine.db"
    engine_version: str = "2026-10-01.v1"

    # ---- Logging ----
    log_level: str = "INFO"
    sql_log_level: str = "WARNING"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Money math ----
    money_places: int = 2
    # allowed |sum(payouts) - pool| per holder, in currency units
    rounding_tolerance_per_holder: float = 0.01
    ledger_currency: str = "NGN"
    payout_reference_prefix: str = "PAY"
    investment_reference_prefix: str = "INV"

    # ---- Notifications ----
    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = 5.0

    # ---- Dev auth headers ----
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"
    dev_auto_provision: bool = True

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if self.money_places < 0:
            raise ValueError("money_places must be >= 0")

        if is_prod:
            if self.dev_auto_provision:
                raise ValueError("SECURITY: dev_auto_provision=True is not allowed in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
