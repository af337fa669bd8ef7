"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    log_level: str = Field(default="INFO")

    # HTTP server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10000)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio webhooks (e.g. https://<ngrok>.ngrok-free.app).",
    )

    # Twilio (Voice)
    twilio_account_sid: str | None = Field(default=None)
    twilio_auth_token: str | None = Field(default=None)
    twilio_from_number: str | None = Field(default=None, description="E.164, e.g. +1680...")
    twilio_target_number: str | None = Field(
        default=None,
        description="Default number dialed by the test call endpoint.",
    )
    twilio_say_voice: str = Field(default="alice")
    twilio_say_language: str = Field(default="fr-FR")
    twilio_say_text: str = Field(default="Connexion au serveur audio.")
    twilio_connect_pause_seconds: int = Field(default=1, ge=0)
    twilio_stream_track: Literal["inbound_track", "outbound_track", "both_tracks"] = Field(
        default="both_tracks"
    )

    # Synthetic audio played on each media stream
    tone_frequency_hz: float = Field(default=440.0, gt=0)
    tone_duration_ms: float = Field(default=600.0, ge=0)
    tone_amplitude: float = Field(default=0.35, ge=0.0, le=1.0)
    media_warmup_ms: int = Field(
        default=150,
        ge=0,
        description="Delay between the stream start event and the first audio frame.",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
