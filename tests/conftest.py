from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class FakeTransport:
    """In-memory `MediaTransport` recording every sent message with its loop time."""

    def __init__(self) -> None:
        self.is_open = True
        self.sent: list[str] = []
        self.sent_at: list[float] = []
        self.fail_after: int | None = None

    async def send_text(self, data: str) -> None:
        import asyncio

        from telephony.pacer import TransportClosedError

        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            self.is_open = False
            raise TransportClosedError("peer went away")
        self.sent.append(data)
        self.sent_at.append(asyncio.get_running_loop().time())


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(scope="session")
def app():
    os.environ["PUBLIC_BASE_URL"] = "https://gateway.example.com"
    os.environ["MEDIA_WARMUP_MS"] = "10"
    for key in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER", "TWILIO_TARGET_NUMBER"):
        os.environ.pop(key, None)

    import importlib

    # Ensure clean import with the test settings.
    for module_name in [
        "config.settings",
        "integrations.twilio_client",
        "integrations.twilio_streaming",
        "api.twilio_routes",
        "api.routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app
