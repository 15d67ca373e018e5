from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    environment: str = Field("development", alias="ENVIRONMENT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    server_port: int = Field(3001, alias="SERVER_PORT")

    hitoko_ws_url: str = Field("wss://www.hitoko.co.id/erp/ws-mqtt/mqtt", alias="HITOKO_WS_URL")
    mqtt_username: str = Field("user", alias="MQTT_USERNAME")
    mqtt_password: Optional[str] = Field(None, alias="MQTT_PASSWORD")
    mqtt_keepalive: int = Field(60, alias="MQTT_KEEPALIVE")
    mqtt_connect_timeout: float = Field(3.0, alias="MQTT_CONNECT_TIMEOUT")
    mqtt_reconnect_period: float = Field(5.0, alias="MQTT_RECONNECT_PERIOD")
    mqtt_max_reconnect_attempts: int = Field(10, alias="MQTT_MAX_RECONNECT_ATTEMPTS")
    mqtt_tls_insecure: bool = Field(False, alias="MQTT_TLS_INSECURE")
    mqtt_origin: str = Field("https://www.hitoko.co.id", alias="MQTT_ORIGIN")

    shop_id: Optional[str] = Field(None, alias="SHOP_ID")
    company_id: str = Field("34417", alias="COMPANY_ID")
    marketplace_code: str = Field("00", alias="MARKETPLACE_CODE")

    webhook_url: Optional[str] = Field(None, alias="WEBHOOK_URL")
    webhook_timeout_seconds: float = Field(10.0, alias="WEBHOOK_TIMEOUT_SECONDS")
    webhook_retry_attempts: int = Field(3, alias="WEBHOOK_RETRY_ATTEMPTS")
    webhook_retry_delay_seconds: float = Field(1.0, alias="WEBHOOK_RETRY_DELAY_SECONDS")
    webhook_user_agent: str = Field("Hitoko-Pusher/1.0", alias="WEBHOOK_USER_AGENT")

    dedup_window_seconds: float = Field(300.0, alias="DEDUP_WINDOW_SECONDS")
    drain_timeout_seconds: float = Field(15.0, alias="DRAIN_TIMEOUT_SECONDS")

    hitoko_api_base: Optional[str] = Field(None, alias="HITOKO_API_BASE")
    hitoko_auth_token: Optional[str] = Field(None, alias="HITOKO_AUTH_TOKEN")

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def webhook_urls(self) -> list[str]:
        if not self.webhook_url:
            return []
        return [url.strip() for url in self.webhook_url.split(",") if url.strip()]

    @property
    def shop_topic(self) -> str:
        # Vendor topic format: marketplace code + shop id, e.g. "00" + "1640619651"
        shop_id, _ = self.require_broker()
        return f"{self.marketplace_code}{shop_id}"

    def require_broker(self) -> tuple[str, str]:
        missing: list[str] = []
        if not self.shop_id:
            missing.append("SHOP_ID")
        if not self.hitoko_ws_url:
            missing.append("HITOKO_WS_URL")

        if missing:
            raise RuntimeError(f"Broker config missing: {', '.join(missing)}")

        return (self.shop_id, self.hitoko_ws_url)

    def require_hitoko_api(self) -> tuple[str, str]:
        missing: list[str] = []
        if not self.hitoko_api_base:
            missing.append("HITOKO_API_BASE")
        if not self.hitoko_auth_token:
            missing.append("HITOKO_AUTH_TOKEN")

        if missing:
            raise RuntimeError(f"Hitoko API config missing: {', '.join(missing)}")

        return (self.hitoko_api_base, self.hitoko_auth_token)

    @property
    def hitoko_api_configured(self) -> bool:
        return bool(self.hitoko_api_base and self.hitoko_auth_token)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

settings = Settings()
