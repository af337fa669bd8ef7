"""Exceptions raised by the HTTP call-control layer.

The media pipeline never raises these; they only surface through routes.
"""

from __future__ import annotations


class GatewayError(Exception):
    status_code: int = 500
    default_detail: str = "Gateway error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class TwilioNotConfiguredError(GatewayError):
    status_code = 503
    default_detail = "Missing Twilio configuration."


class MissingTargetNumberError(GatewayError):
    status_code = 422
    default_detail = "No target phone number given or configured."


class CallCreationFailedError(GatewayError):
    status_code = 502
    default_detail = "Twilio call creation failed."
