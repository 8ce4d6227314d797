import logging
from config import RelayConfig
from senders.base_sender import BaseSender
from senders.smtp_sender import SMTPSender
from senders.mock_senders import MockSender

logger = logging.getLogger("newsletter_service")


class EmailFactory:
    @staticmethod
    def get_sender(provider: str, relay: RelayConfig) -> BaseSender:
        provider = (provider or "smtp").lower()
        if provider == "smtp":
            if not relay.username or not relay.password:
                logger.warning("EMAIL_USER / EMAIL_PASS not set; relay login will be skipped or rejected")
            logger.info(f"Using SMTP relay {relay.host}:{relay.port} (tls={relay.use_tls}, ssl={relay.use_ssl})")
            return SMTPSender(relay)
        elif provider == "mock":
            logger.warning("Using mock relay: messages are logged, not delivered")
            return MockSender()
        else:
            raise ValueError(f"Unsupported provider: {provider}")
