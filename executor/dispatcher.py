import logging
import asyncio
import traceback
from typing import List

from config import DispatchMode, RelayConfig
from models.newsletter import (
    DispatchFailure,
    DispatchResult,
    NewsletterRequest,
    RecipientOutcome,
)
from senders.base_sender import BaseSender
from .template_renderer import RenderedNewsletter, TemplateRenderer

logger = logging.getLogger("newsletter_service")


class NewsletterDispatcher:
    """
    Sends one email per recipient of a validated request.

    In sequential mode the first failure stops the batch: later recipients
    are never attempted and the result carries the failing recipient.
    In independent mode every recipient is attempted and each outcome is
    reported, with at most `concurrency` sends in flight.
    """

    def __init__(
        self,
        sender: BaseSender,
        relay: RelayConfig,
        renderer: TemplateRenderer,
        mode: DispatchMode = DispatchMode.SEQUENTIAL,
        concurrency: int = 1,
    ):
        self.sender = sender
        self.relay = relay
        self.renderer = renderer
        self.mode = mode
        self.concurrency = max(1, concurrency)

    async def dispatch(self, request: NewsletterRequest) -> DispatchResult:
        content = self.renderer.render(request)
        logger.info(
            f"Dispatching '{request.subject}' to {len(request.recipients)} recipients "
            f"(mode={self.mode.value})"
        )
        if self.mode == DispatchMode.INDEPENDENT:
            return await self._dispatch_independent(request, content)
        return await self._dispatch_sequential(request, content)

    async def _send_one(self, request: NewsletterRequest, content: RenderedNewsletter, recipient: str):
        await self.sender.send(
            from_email=self.relay.sender_address,
            to_email=recipient,
            subject=content.subject,
            html_body=content.html_body,
            text_body=content.text_body,
            from_name=self.relay.from_name,
            attachments=request.attachments,
        )

    async def _dispatch_sequential(self, request: NewsletterRequest, content: RenderedNewsletter) -> DispatchResult:
        result = DispatchResult()
        total = len(request.recipients)
        for idx, recipient in enumerate(request.recipients):
            logger.debug(f"   [{idx+1}/{total}] Sending to: {recipient}")
            try:
                await self._send_one(request, content, recipient)
            except Exception as e:
                logger.error(f"Send to {recipient} failed after {result.sent_count} sent; aborting batch: {e}")
                logger.debug(traceback.format_exc())
                result.failure = DispatchFailure(recipient=recipient, cause=str(e))
                return result
            result.sent_count += 1
            logger.info(f"       Email sent to {recipient}")

        logger.info(f"Batch complete: {result.sent_count}/{total} sent")
        return result

    async def _dispatch_independent(self, request: NewsletterRequest, content: RenderedNewsletter) -> DispatchResult:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def process_recipient(recipient: str) -> RecipientOutcome:
            async with semaphore:
                try:
                    await self._send_one(request, content, recipient)
                except Exception as e:
                    logger.error(f"Error sending to {recipient}: {e}")
                    return RecipientOutcome(recipient=recipient, sent=False, error=str(e))
                logger.info(f"       Email sent to {recipient}")
                return RecipientOutcome(recipient=recipient, sent=True)

        outcomes: List[RecipientOutcome] = list(
            await asyncio.gather(*(process_recipient(r) for r in request.recipients))
        )
        sent = sum(1 for o in outcomes if o.sent)
        logger.info(f"Batch complete: {sent}/{len(outcomes)} sent, {len(outcomes) - sent} failed")
        return DispatchResult(sent_count=sent, outcomes=outcomes)
