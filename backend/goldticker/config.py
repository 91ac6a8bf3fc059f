"""Runtime configuration for goldticker.

Every field can be overridden with an environment variable prefixed with
``GOLDTICKER_`` (nested endpoint fields use ``__``, e.g.
``GOLDTICKER_ICBC__URL``) or from a ``.env`` file in the working directory.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BankEndpoint(BaseModel):
    """One HTTP price source. POST endpoints send ``json_body`` as the request body."""

    url: str
    method: str = "GET"
    json_body: dict[str, Any] | None = None

    @field_validator("method")
    @classmethod
    def _normalize_method(cls, value: str) -> str:
        method = value.strip().upper()
        if method not in ("GET", "POST"):
            raise ValueError(f"unsupported HTTP method: {value!r}")
        return method


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="GOLDTICKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"

    # HTTP polling
    poll_interval: float = 3.0  # seconds between poll cycles
    fetch_timeout: float = 30.0  # per-request ceiling
    minsheng: BankEndpoint = Field(
        default_factory=lambda: BankEndpoint(
            url="https://api.jdjygold.com/gw/generic/hj/h5/m/latestPrice",
            method="GET",
        )
    )
    icbc: BankEndpoint = Field(
        default_factory=lambda: BankEndpoint(
            url="https://api.jdjygold.com/gw2/generic/jrm/h5/m/stdLatestPrice",
            method="POST",
            json_body={"productSku": "1961543816"},
        )
    )
    zheshang: BankEndpoint = Field(
        default_factory=lambda: BankEndpoint(
            url="https://api.jdjygold.com/gw2/generic/jrm/h5/m/stdLatestPrice",
            method="POST",
            json_body={"productSku": "1961566036"},
        )
    )

    # Streaming quote feed
    stream_url: str = "wss://webhqv1.jrjr.com:39920/ws"
    stream_action: str = "sub"
    stream_biz_type: str = "foreign"
    stream_keys: list[str] = Field(default_factory=lambda: ["XAU"])
    stream_symbol_code: str = "XAU"
    stream_open_timeout: float = 10.0
    throttle_window: float = 0.2
    forced_reconnect_interval: float = 300.0
    connect_retry_delay: float = 5.0
    close_retry_delay: float = 3.0
    reset_xau_on_connect: bool = True

    # UI push
    sse_interval: float = 0.5

    @field_validator("throttle_window")
    @classmethod
    def _check_throttle_window(cls, value: float) -> float:
        if not 0.1 <= value <= 0.3:
            raise ValueError("throttle_window must be between 0.1 and 0.3 seconds")
        return value

    @field_validator("poll_interval", "fetch_timeout", "forced_reconnect_interval")
    @classmethod
    def _check_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    def subscription_message(self) -> dict[str, Any]:
        """Frame sent once after every successful stream connection."""
        return {
            "action": self.stream_action,
            "bizType": self.stream_biz_type,
            "keys": list(self.stream_keys),
        }


settings = Settings()
