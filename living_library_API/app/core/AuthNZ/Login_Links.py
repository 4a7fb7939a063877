# Login_Links.py
# Description: Delivery of one-time login links ("magic links").
#
# Imports
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional
#
# 3rd-party Libraries
import httpx
from loguru import logger
#
# Local Imports
from living_library_API.app.core.exceptions import UpstreamServiceError
#
#######################################################################################################################
#
# Functions:


class LoginLinkSender(ABC):
    @abstractmethod
    async def send(self, email: str, link: str) -> None:
        """Delivers ``link`` to ``email``. Raises UpstreamServiceError when delivery fails."""

    async def aclose(self) -> None:
        return None


class LogLoginLinkSender(LoginLinkSender):
    """Writes the link to the server log. For development and self-hosted single-tenant setups."""

    async def send(self, email: str, link: str) -> None:
        logger.info(f"Login link for {email}: {link}")


class WebhookLoginLinkSender(LoginLinkSender):
    """POSTs {email, link} to a webhook that performs the actual email delivery."""

    def __init__(self, webhook_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        if not webhook_url:
            raise ValueError("A webhook URL is required for webhook login link delivery.")
        self.webhook_url = webhook_url
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, email: str, link: str) -> None:
        try:
            response = await self.client.post(self.webhook_url, json={"email": email, "link": link})
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Login link webhook returned {e.response.status_code} for {email}")
            raise UpstreamServiceError(f"Login link delivery failed with status {e.response.status_code}",
                                       provider="login-webhook", original_error=e) from e
        except httpx.RequestError as e:
            logger.error(f"Login link webhook unreachable: {e}")
            raise UpstreamServiceError("Login link delivery service is unreachable",
                                       provider="login-webhook", original_error=e) from e
        logger.info(f"Login link delivered to webhook for {email}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


def create_login_link_sender(app_settings: Mapping[str, Any]) -> LoginLinkSender:
    delivery = app_settings.get("LOGIN_LINK_DELIVERY", "log")
    if delivery == "webhook":
        webhook_url = app_settings.get("LOGIN_LINK_WEBHOOK_URL")
        if webhook_url:
            return WebhookLoginLinkSender(webhook_url)
        logger.warning("Webhook login link delivery requested without LOGIN_LINK_WEBHOOK_URL. Using log delivery.")
    return LogLoginLinkSender()

#
# End of Login_Links.py
#######################################################################################################################
