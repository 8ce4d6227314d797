import logging
from typing import List, Optional

from models.newsletter import Attachment, NewsletterPayload, NewsletterRequest
from .errors import ValidationError

logger = logging.getLogger("newsletter_service")

NO_RECIPIENTS = "No recipient emails provided."
MISSING_CONTENT = "Subject and message are required."
BLANK_RECIPIENT = "Recipient emails must be non-empty strings."


def validate_newsletter(
    payload: NewsletterPayload,
    attachments: Optional[List[Attachment]] = None,
) -> NewsletterRequest:
    """
    Checks the required fields and returns the request the dispatcher works on.

    Recipients are checked first, then subject and body. Order and
    duplicates in the recipient list are preserved.
    """
    if not payload.recipients:
        raise ValidationError(NO_RECIPIENTS)

    recipients = [r.strip() if isinstance(r, str) else "" for r in payload.recipients]
    if any(not r for r in recipients):
        raise ValidationError(BLANK_RECIPIENT)

    subject = (payload.subject or "").strip()
    body = (payload.body or "").strip()
    if not subject or not body:
        raise ValidationError(MISSING_CONTENT)

    links = [link.strip() for link in (payload.links or []) if link and link.strip()]

    request = NewsletterRequest(
        recipients=recipients,
        subject=subject,
        body=body,
        links=links,
        attachments=attachments or [],
    )
    logger.debug(
        f"Validated newsletter: {len(request.recipients)} recipients, "
        f"{len(request.links)} links, {len(request.attachments)} attachments"
    )
    return request
