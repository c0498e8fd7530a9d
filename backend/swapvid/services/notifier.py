"""
Notification Service - Email the user when their video is ready
"""

import html
from typing import Any, Dict, Optional

import httpx

from swapvid.config.constants import EMAIL_SUBJECT
from swapvid.services.observability import logger


class NotificationError(Exception):
    """Notification could not be delivered"""

    pass


def render_completion_email(video_url: str, character_name: Optional[str] = None) -> str:
    """
    Render the completion email body

    Args:
        video_url: Public URL of the stored video
        character_name: Optional character shown in the email

    Returns:
        HTML string
    """
    url = html.escape(video_url, quote=True)
    character = (
        f"<p>Character: {html.escape(character_name)}</p>" if character_name else ""
    )
    return (
        "<h1>Your face swap video is ready!</h1>"
        f"{character}"
        "<p>Click below to view your video:</p>"
        f'<p><a href="{url}" style="display:inline-block;padding:12px 24px;'
        'background:#000;color:#fff;text-decoration:none;border-radius:6px;">View Video</a></p>'
        f'<p style="margin-top:20px;color:#666;font-size:14px;">Or copy this link: {url}</p>'
    )


class ResendEmailNotifier:
    """
    Sends completion emails through the Resend HTTP API
    """

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        timeout_s: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def notify(self, address: str, url: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Send the "video ready" email

        Args:
            address: Recipient email address
            url: Public URL of the stored video
            context: Extra fields (character_name, job_id)

        Raises:
            NotificationError: If the email API rejects the request or is unreachable
        """
        context = context or {}
        payload = {
            "from": self.sender,
            "to": [address],
            "subject": EMAIL_SUBJECT,
            "html": render_completion_email(url, context.get("character_name")),
        }

        try:
            response = await self.client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send email to {address}: {e}") from e

        logger.info("notification_sent", address=address, job_id=context.get("job_id"))

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
