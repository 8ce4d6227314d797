import smtplib
from email.mime.application import MIMEApplication
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from email import encoders
from typing import Optional, Dict, List
import logging
import asyncio

from config import RelayConfig
from executor.errors import DeliveryError
from models.newsletter import Attachment
from .base_sender import BaseSender

logger = logging.getLogger("newsletter_service")


def build_message(
    from_email: str,
    to_email: str,
    subject: str,
    html_body: str,
    text_body: str = None,
    from_name: str = None,
    reply_to: str = None,
    headers: Dict[str, str] = None,
    attachments: Optional[List[Attachment]] = None,
) -> MIMEMultipart:
    alternative = MIMEMultipart("alternative")
    if text_body:
        alternative.attach(MIMEText(text_body, "plain", "utf-8"))
    if html_body:
        alternative.attach(MIMEText(html_body, "html", "utf-8"))

    if attachments:
        msg = MIMEMultipart("mixed")
        msg.attach(alternative)
        for attachment in attachments:
            msg.attach(_attachment_part(attachment))
    else:
        msg = alternative

    msg["Subject"] = subject
    # A trailing space (e.g., "email@...com ") can cause Gmail to silently drop the message.
    clean_from_email = from_email.strip() if from_email else ""
    if from_name:
        msg["From"] = formataddr((from_name.strip(), clean_from_email))
    else:
        msg["From"] = clean_from_email
    msg["To"] = to_email.strip()
    if reply_to:
        msg["Reply-To"] = reply_to

    if headers:
        for key, value in headers.items():
            msg.add_header(key, value)
    return msg


def _attachment_part(attachment: Attachment) -> MIMEBase:
    maintype, _, subtype = attachment.mime_type.partition("/")
    if maintype == "application":
        part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
    else:
        part = MIMEBase(maintype, subtype or "octet-stream")
        part.set_payload(attachment.content)
        encoders.encode_base64(part)
    part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
    return part


class SMTPSender(BaseSender):
    def __init__(self, config: RelayConfig):
        self.config = config

    async def send(
        self,
        from_email: str,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str = None,
        from_name: str = None,
        reply_to: str = None,
        headers: Dict[str, str] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> None:
        # Wrap synchronous SMTP in a thread to keep the service responsive
        msg = build_message(
            from_email, to_email, subject, html_body, text_body,
            from_name, reply_to, headers, attachments,
        )
        await asyncio.to_thread(self._send_sync, from_email.strip(), to_email.strip(), msg)

    def _connect(self) -> smtplib.SMTP:
        if self.config.use_ssl:
            return smtplib.SMTP_SSL(self.config.host, self.config.port, timeout=self.config.timeout_seconds)
        return smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout_seconds)

    def _send_sync(self, from_email: str, to_email: str, msg: MIMEMultipart) -> None:
        try:
            with self._connect() as server:
                if self.config.use_tls and not self.config.use_ssl:
                    server.starttls()
                if self.config.username:
                    server.login(self.config.username, self.config.password or "")
                server.sendmail(from_email, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP send failed to {to_email}: {e}")
            raise DeliveryError(to_email, str(e)) from e
        logger.debug(f"SMTP relay {self.config.host}:{self.config.port} accepted message for {to_email}")
