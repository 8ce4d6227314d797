class NewsletterError(Exception):
    """Base class for errors reported by the newsletter endpoints."""


class ValidationError(NewsletterError):
    """A required field is missing or empty. Raised before any send."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DeliveryError(NewsletterError):
    """The relay rejected a message or could not be reached."""

    def __init__(self, recipient: str, message: str):
        super().__init__(f"Delivery to {recipient} failed: {message}")
        self.recipient = recipient
        self.message = message
