"""Application configuration settings.

This module defines the ``Settings`` class using ``pydantic-settings`` to
load configuration from environment variables (and an optional ``.env``
file). It centralises the runtime knobs of the alert engine, such as the
currency tolerance, the default alert content and the behaviour of the
in-process notification center used by the demo service.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration values loaded from environment variables.

    Environment variable names map to fields by alias. Every field has a
    default so the engine can run without any configuration at all.
    """

    # Currency classification
    currency_tolerance_seconds: float = Field(
        default=2.0,
        alias="CURRENCY_TOLERANCE_SECONDS",
        description=(
            "How many seconds before its start a delivered alert already counts "
            "as current. Alerts are observed to arrive up to ~0.7s early."
        ),
    )

    # Alert content
    alert_category: str = Field(default="alarm", alias="ALERT_CATEGORY")
    booking_title: str = Field(default="SomeCalendar", alias="BOOKING_TITLE")
    booking_message: str = Field(default="Your booking starts now", alias="BOOKING_MESSAGE")

    # Local notification center
    delivery_jitter_seconds: float = Field(
        default=0.7,
        alias="DELIVERY_JITTER_SECONDS",
        description="Maximum random offset (either way) applied to local deliveries.",
    )
    authorize_notifications: bool = Field(
        default=True,
        alias="AUTHORIZE_NOTIFICATIONS",
        description="Whether the local center grants the authorization request.",
    )

    # Demo service defaults
    start_after_seconds: int = Field(default=10, alias="START_AFTER_SECONDS")
    duration_seconds: int = Field(default=10, alias="DURATION_SECONDS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
