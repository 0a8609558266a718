"""OTP Verifier — configuration loaded from environment."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./otp_verifier.db"

    # ── Passcode policy ───────────────────────────────────
    otp_code_length: int = 6
    otp_ttl_minutes: int = 10
    otp_max_attempts: int = 3
    otp_resend_cooldown_seconds: int = 60
    otp_sweep_interval_seconds: float = 60.0

    # ── Email delivery ────────────────────────────────────
    email_notifications_enabled: bool = False
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_start_tls: bool = True
    email_from: str = "OTP Verifier <no-reply@example.com>"

    # ── External account API ──────────────────────────────
    # Empty → verified flags are written to the local accounts table.
    account_api_base_url: str = ""

    # ── Operator diagnostics ──────────────────────────────
    status_enabled: bool = False
    operator_token: str = ""

    # ── App ───────────────────────────────────────────────
    app_name: str = "OTP Verifier"
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
