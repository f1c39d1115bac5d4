from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "data/peerassist.db"
    host: str = "0.0.0.0"
    port: int = 8000
    otp_digits: int = 6
    otp_ttl_minutes: int = 30
    otp_max_attempts: int = 5
    pending_verification_reclaim_hours: int = 72
    background_interval_seconds: int = 60
    notification_backend: str = "log"  # log | http
    notification_relay_url: str | None = None
    notification_relay_token: str | None = None
    notification_timeout_seconds: int = 10
    rate_limit_enabled: bool = True
    rate_limit_register: str = "5/hour"
    rate_limit_write: str = "30/minute"
    rate_limit_verify: str = "10/minute"
    rate_limit_read: str = "120/minute"

    model_config = {"env_prefix": "PEERASSIST_"}


settings = Settings()
