import mimetypes
from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, List


class Attachment(BaseModel):
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def mime_type(self) -> str:
        if self.content_type and self.content_type != "application/octet-stream":
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.filename)
        return guessed or "application/octet-stream"


class NewsletterPayload(BaseModel):
    """
    Raw request body. Every field is optional here so that missing
    values are reported by the validator with a 400, not by FastAPI.
    """
    recipients: Optional[List[str]] = Field(
        default=None, validation_alias=AliasChoices("recipients", "emails")
    )
    subject: Optional[str] = None
    body: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("body", "message")
    )
    links: Optional[List[str]] = None


class NewsletterRequest(BaseModel):
    recipients: List[str]
    subject: str
    body: str
    links: List[str] = []
    attachments: List[Attachment] = []


class RecipientOutcome(BaseModel):
    recipient: str
    sent: bool
    error: Optional[str] = None


class DispatchFailure(BaseModel):
    recipient: str
    cause: str


class DispatchResult(BaseModel):
    sent_count: int = 0
    failure: Optional[DispatchFailure] = None
    outcomes: List[RecipientOutcome] = []

    @property
    def ok(self) -> bool:
        return self.failure is None and all(o.sent for o in self.outcomes)
