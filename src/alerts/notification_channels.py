import asyncio
import logging
from typing import Optional

import aiohttp

from src.core.config import settings

logger = logging.getLogger(__name__)

SEVERITY_ICONS = {
    "critical": "🚨",
    "high": "🔥",
    "medium": "📣",
    "info": "ℹ️",
}


class SlackClient:
    """
    Client for sending Slack notifications via Webhook.
    """
    def __init__(self, webhook_url: Optional[str] = None):
        self.webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        if not self.webhook_url:
            logger.warning("SLACK_WEBHOOK_URL not set. Slack notifications will be disabled.")

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    async def send_message(self, text: str, blocks: Optional[list] = None) -> bool:
        """
        Send a message to Slack.
        """
        if not self.webhook_url:
            logger.info(f"[MOCK SLACK] {text}")
            return True

        payload = {"text": text}
        if blocks:
            payload["blocks"] = blocks

        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15)) as session:
                async with session.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"}
                ) as response:
                    if response.status in (200, 201, 202):
                        return True
                    logger.error(f"Slack API Error: {response.status} - {await response.text()}")
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Failed to send Slack message: {e}")
            return False

    async def send_alert(self, severity: str, title: str, message: Optional[str] = None) -> bool:
        """Post one pipeline alert; `text` is the fallback for notifications."""
        icon = SEVERITY_ICONS.get(severity, "")
        text = f"{icon} *{title}*"
        if message:
            text += f"\n{message}"
        return await self.send_message(text, blocks=alert_blocks(severity, title, message))


def alert_blocks(severity: str, title: str, message: Optional[str] = None) -> list:
    """Block Kit layout: title section, optional body, severity footer."""
    icon = SEVERITY_ICONS.get(severity, "")
    blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": f"{icon} *{title}*"}}]
    if message:
        # Slack rejects section text over 3000 chars
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": message[:3000]}})
    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": f"severity: {severity}"}],
    })
    return blocks
