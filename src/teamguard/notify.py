"""Login-link delivery.

The core only produces the token string; getting it to the user is the
notifier's job. LogNotifier is the development stand-in: it logs the
link so the login flow can be completed by hand. In production it logs
that a link was sent, never the link itself.
"""

from abc import ABC, abstractmethod

import structlog

logger = structlog.get_logger()


class Notifier(ABC):
    @abstractmethod
    async def send_login_link(self, email: str, token: str) -> None: ...


class LogNotifier(Notifier):
    def __init__(self, frontend_url: str, reveal_links: bool = True):
        self.frontend_url = frontend_url.rstrip("/")
        self.reveal_links = reveal_links

    def login_url(self, token: str) -> str:
        return f"{self.frontend_url}/auth/verify?token={token}"

    async def send_login_link(self, email: str, token: str) -> None:
        if self.reveal_links:
            logger.info("teamguard.login_link", email=email, url=self.login_url(token))
        else:
            logger.info("teamguard.login_link_sent", email=email)
