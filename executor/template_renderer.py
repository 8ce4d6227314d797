from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape
from markupsafe import Markup, escape
from pydantic import BaseModel
from typing import Dict, Any
import os
import logging

from config import BrandingConfig
from models.newsletter import NewsletterRequest

logger = logging.getLogger("newsletter_service")

NEWSLETTER_FOLDER = "newsletter"


def nl2br(value: str) -> Markup:
    """Escapes `value` and turns line breaks into <br> tags."""
    lines = str(value).replace("\r\n", "\n").split("\n")
    return Markup("<br>\n").join(escape(line) for line in lines)


class RenderedNewsletter(BaseModel):
    subject: str
    html_body: str
    text_body: str


class TemplateRenderer:
    def __init__(self, template_dir: str, branding: BrandingConfig = None):
        # StrictUndefined raises an error if a variable is missing
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(enabled_extensions=("html", "html.j2")),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["nl2br"] = nl2br
        self.branding = branding or BrandingConfig()

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        template_path = os.path.join(NEWSLETTER_FOLDER, template_name)
        logger.debug(f"Rendering template: {template_path}")
        try:
            template = self.env.get_template(template_path)
            return template.render(**context)
        except TemplateError as e:
            logger.error(f"Failed to render template {template_path}: {e}")
            raise ValueError(f"Template rendering failed: {e}")

    def render(self, request: NewsletterRequest) -> RenderedNewsletter:
        """Renders the content shared by every recipient of the batch."""
        context = {
            "subject": request.subject,
            "message": request.body,
            "links": request.links,
            "company_name": self.branding.company_name,
            "logo_url": self.branding.logo_url,
            "team_name": self.branding.team_name,
        }
        return RenderedNewsletter(
            subject=request.subject,
            html_body=self.render_template("body.html.j2", context),
            text_body=self.render_template("body.txt.j2", context),
        )
