from __future__ import annotations

import logging
from dataclasses import dataclass

from twilio.base.exceptions import TwilioRestException

from api.errors import CallCreationFailedError, MissingTargetNumberError, TwilioNotConfiguredError
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    from_number: str
    public_base_url: str
    target_number: str | None = None


def get_twilio_config() -> TwilioConfig:
    settings = get_settings()
    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise TwilioNotConfiguredError("Twilio credentials are not configured")
    if not settings.twilio_from_number:
        raise TwilioNotConfiguredError("Twilio from-number is not configured")
    if not settings.public_base_url:
        raise TwilioNotConfiguredError("PUBLIC_BASE_URL is required for Twilio callbacks")

    return TwilioConfig(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        public_base_url=settings.public_base_url.rstrip("/"),
        target_number=settings.twilio_target_number,
    )


def build_twilio_client(cfg: TwilioConfig):
    from twilio.rest import Client

    return Client(cfg.account_sid, cfg.auth_token)


def outbound_voice_url(cfg: TwilioConfig) -> str:
    return f"{cfg.public_base_url}/api/twilio/voice?mode=outbound"


def create_outbound_call(client, cfg: TwilioConfig, to_number: str | None = None) -> str:
    """Dial `to_number` (or the configured target) and return the call SID."""

    target = to_number or cfg.target_number
    if not target:
        raise MissingTargetNumberError()

    try:
        call = client.calls.create(
            to=target,
            from_=cfg.from_number,
            url=outbound_voice_url(cfg),
            method="POST",
        )
    except TwilioRestException as exc:
        LOGGER.exception("Twilio call creation failed: %s", exc)
        raise CallCreationFailedError(str(exc.msg or exc)) from exc

    LOGGER.info("Outbound call created call_sid=%s to=%s", call.sid, target)
    return str(call.sid)
