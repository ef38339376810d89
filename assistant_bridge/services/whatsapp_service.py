from typing import Optional

import httpx

from assistant_bridge.config import settings
from assistant_bridge.logging_config import get_logger

logger = get_logger("whatsapp_service")


class WhatsAppAPIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class WhatsAppService:
    """Service for the WhatsApp Cloud API (Graph API)."""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://graph.facebook.com/v17.0",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _make_request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Make request to the Graph API, raising WhatsAppAPIError on failure."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.error(f"WhatsApp API request failed: {exc}")
            raise WhatsAppAPIError(f"WhatsApp API request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error(
                "WhatsApp API error",
                extra={"context": {"status_code": response.status_code, "body": response.text[:500]}},
            )
            raise WhatsAppAPIError(
                f"WhatsApp API error: {response.status_code} - {response.text[:200]}", response.status_code
            )
        return response

    async def send_text(self, phone_number_id: str, to: str, text: str) -> dict:
        """Send a text message to a WhatsApp user."""
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "text": {"body": text},
        }
        response = await self._make_request("POST", f"{self.base_url}/{phone_number_id}/messages", json=payload)
        logger.info(f"WhatsApp message sent: to={to}, len={len(text)}")
        return response.json()

    async def get_media_url(self, media_id: str) -> str:
        """Resolve a media id to a short-lived download URL."""
        response = await self._make_request("GET", f"{self.base_url}/{media_id}")
        url = response.json().get("url")
        if not url:
            raise WhatsAppAPIError(f"Media {media_id} has no download url")
        return url

    async def download_media(self, url: str) -> bytes:
        response = await self._make_request("GET", url)
        return response.content


_whatsapp_service: Optional[WhatsAppService] = None


def get_whatsapp_service() -> WhatsAppService:
    global _whatsapp_service
    if _whatsapp_service is None:
        _whatsapp_service = WhatsAppService(settings.whatsapp_token, base_url=settings.graph_api_base_url)
    return _whatsapp_service
