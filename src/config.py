from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Environment
    environment: str = "development"  # "development" or "production"

    # Database
    database_url: str = "sqlite:///./data/push_scheduler.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    debug: bool = False

    # Expo push gateway
    expo_access_token: str = ""
    expo_api_base_url: str = "https://exp.host/--/api/v2"
    push_request_timeout: int = 15  # seconds
    push_max_retries: int = 3
    push_retry_delay: float = 1.0  # seconds
    push_batch_size: int = 100  # Expo accepts at most 100 messages per request
    receipt_batch_size: int = 300  # Expo accepts at most 300 receipt ids per request

    # Push message defaults
    push_default_ttl: int = 3600  # seconds
    push_default_priority: str = "high"
    push_default_sound: str = "default"
    push_default_badge: int = 1
    push_default_channel_id: str = "default"
    push_mutable_content: bool = True

    # Scheduler
    scheduler_timezone: str = "Asia/Shanghai"
    scheduler_max_jobs: int = 100
    scheduler_misfire_grace_time: int = 60  # seconds

    # Devices
    device_token_expiry_days: int = 30

    # Feeds
    feed_timeout: int = 10  # seconds
    feed_max_retries: int = 3
    feed_retry_delay: float = 1.0  # seconds
    exchange_rate_api_url: str = "https://api.exchangerate-api.com/v4/latest/USD"
    exchange_rate_cache_minutes: int = 30
    okx_ticker_url: str = "https://www.okx.com/api/v5/market/ticker"
    btc_trading_pair: str = "BTC-USDT"

    # Updaters
    exchange_rate_cron: str = "0 */30 * * * *"  # on the hour and half hour
    btc_update_cron: str = "0 */30 * * * *"
    btc_price_threshold: float = 80000
    btc_alert_check_minutes: int = 5
    btc_alert_cooldown_minutes: int = 30
    btc_alert_drop_ratio: float = 0.05

    # CORS (comma-separated origins, empty means localhost only)
    cors_origins: str = ""

    # Admin
    admin_api_key: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
