from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import List, Optional
import json
import logging
import re
import time
import traceback

from config import Settings, load_settings
from email_factory import EmailFactory
from executor.dispatcher import NewsletterDispatcher
from executor.errors import ValidationError
from executor.template_renderer import TemplateRenderer
from executor.validator import validate_newsletter
from models.newsletter import Attachment, DispatchResult, NewsletterPayload
from senders.base_sender import BaseSender

logger = logging.getLogger("newsletter_service")

SEND_FAILED = "Internal Server Error. Failed to send emails."
SEND_OK = "Emails sent successfully!"
NOT_FOUND = "Route not found."
INVALID_BODY = "Invalid request body."


def configure_logging(settings: Settings):
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.append(logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=handlers
    )


def _split_form_list(values: Optional[List[str]]) -> Optional[List[str]]:
    """
    Multipart clients send list fields as repeated fields, as one JSON
    array string, or as one comma/newline separated string.
    """
    if values is None:
        return None
    items = []
    for value in values:
        value = value.strip()
        if value.startswith("["):
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError:
                raise ValidationError(INVALID_BODY)
            if not isinstance(decoded, list) or not all(isinstance(item, str) for item in decoded):
                raise ValidationError(INVALID_BODY)
            items.extend(decoded)
        else:
            items.extend(part for part in re.split(r"[,\n]", value) if part.strip())
    return items


def _failure_response(result: DispatchResult) -> JSONResponse:
    content = {"success": False, "message": SEND_FAILED}
    if result.outcomes:
        content["count"] = result.sent_count
        content["results"] = [o.model_dump() for o in result.outcomes]
    return JSONResponse(status_code=500, content=content)


def create_app(settings: Settings = None, sender: BaseSender = None) -> FastAPI:
    """
    Builds the service. `sender` overrides the relay chosen by
    settings.relay.provider; tests pass a stub here.
    """
    settings = settings or load_settings()
    sender = sender or EmailFactory.get_sender(settings.relay.provider, settings.relay)
    renderer = TemplateRenderer(settings.template_dir, settings.branding)
    dispatcher = NewsletterDispatcher(
        sender=sender,
        relay=settings.relay,
        renderer=renderer,
        mode=settings.dispatch_mode,
        concurrency=settings.dispatch_concurrency,
    )

    app = FastAPI(title="Newsletter Relay Service")
    app.state.settings = settings
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
        return response

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.warning(f"Rejected {request.url.path}: {exc.message}")
        return JSONResponse(status_code=400, content={"success": False, "message": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"success": False, "message": INVALID_BODY})

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"success": False, "message": NOT_FOUND})
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})

    async def run_dispatch(payload: NewsletterPayload, attachments: List[Attachment] = None):
        newsletter = validate_newsletter(payload, attachments)
        logger.info("=" * 80)
        logger.info("RECEIVED NEWSLETTER REQUEST")
        logger.info(f"   Subject: {newsletter.subject}")
        logger.info(f"   Recipients Count: {len(newsletter.recipients)}")
        logger.info(f"   Attachments: {len(newsletter.attachments)}")
        logger.info("=" * 80)

        try:
            result = await dispatcher.dispatch(newsletter)
        except Exception as e:
            logger.error(f"Email sending failed: {e}")
            logger.error(traceback.format_exc())
            return JSONResponse(status_code=500, content={"success": False, "message": SEND_FAILED})

        if not result.ok:
            if result.failure:
                logger.error(
                    f"Email sending failed at {result.failure.recipient} "
                    f"after {result.sent_count} sent: {result.failure.cause}"
                )
            return _failure_response(result)

        content = {"success": True, "message": SEND_OK, "count": result.sent_count}
        if result.outcomes:
            content["results"] = [o.model_dump() for o in result.outcomes]
        return content

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Newsletter Backend is Running Successfully!"

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/send-newsletter")
    async def send_newsletter(payload: NewsletterPayload):
        return await run_dispatch(payload)

    @app.post("/send-newsletter/upload")
    async def send_newsletter_upload(
        emails: Optional[List[str]] = Form(None),
        subject: Optional[str] = Form(None),
        message: Optional[str] = Form(None),
        links: Optional[List[str]] = Form(None),
        attachments: Optional[List[UploadFile]] = File(None),
    ):
        payload = NewsletterPayload(
            recipients=_split_form_list(emails),
            subject=subject,
            body=message,
            links=_split_form_list(links),
        )
        files = []
        for upload in attachments or []:
            if not upload.filename:
                continue
            files.append(Attachment(
                filename=upload.filename,
                content=await upload.read(),
                content_type=upload.content_type,
            ))
        return await run_dispatch(payload, files)

    return app


_settings = load_settings()
configure_logging(_settings)
app = create_app(_settings)

if __name__ == "__main__":
    import uvicorn
    logger.info(f"Server running on http://localhost:{_settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=_settings.port)
