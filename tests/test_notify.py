"""Login-link notifier — what gets logged, and what never does."""

import pytest
from structlog.testing import capture_logs

from teamguard.notify import LogNotifier


@pytest.mark.asyncio
async def test_development_logs_login_url():
    notifier = LogNotifier("http://localhost:5173/", reveal_links=True)
    with capture_logs() as logs:
        await notifier.send_login_link("alice@acme.com", "tok123")
    assert logs[0]["event"] == "teamguard.login_link"
    assert logs[0]["url"] == "http://localhost:5173/auth/verify?token=tok123"


@pytest.mark.asyncio
async def test_production_never_logs_token():
    notifier = LogNotifier("https://app.acme.com", reveal_links=False)
    with capture_logs() as logs:
        await notifier.send_login_link("alice@acme.com", "tok123")
    assert logs[0]["event"] == "teamguard.login_link_sent"
    assert "tok123" not in repr(logs)
