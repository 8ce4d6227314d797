from .base_sender import BaseSender
from typing import Any, Dict, List
import logging

logger = logging.getLogger("newsletter_service")


class MockSender(BaseSender):
    """Logs and records messages instead of talking to a relay."""

    def __init__(self, provider_name: str = "MOCK"):
        self.provider_name = provider_name
        self.sent: List[Dict[str, Any]] = []

    async def send(self, from_email, to_email, subject, html_body, text_body=None,
                   from_name=None, reply_to=None, headers=None, attachments=None) -> None:
        logger.info(f"[{self.provider_name}] Sending email...")
        logger.info(f"   From: {from_name} <{from_email}>")
        logger.info(f"   To: {to_email}")
        logger.info(f"   Subject: {subject}")
        if attachments:
            logger.info(f"   Attachments: {[a.filename for a in attachments]}")
        self.sent.append({
            "from_email": from_email,
            "to_email": to_email,
            "subject": subject,
            "html_body": html_body,
            "text_body": text_body,
            "attachments": list(attachments or []),
        })
