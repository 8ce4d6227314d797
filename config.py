import os
from typing import List, Optional
from enum import Enum
import logging

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field


class DispatchMode(str, Enum):
    SEQUENTIAL = "sequential"
    INDEPENDENT = "independent"


class RelayConfig(BaseModel):
    """Connection and identity settings for the SMTP relay."""
    provider: str = "smtp"
    host: str = "smtp.gmail.com"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    use_ssl: bool = False
    timeout_seconds: float = 30.0
    from_email: Optional[str] = None
    from_name: Optional[str] = "Your Company"

    @property
    def sender_address(self) -> str:
        return (self.from_email or self.username or "").strip()


class BrandingConfig(BaseModel):
    company_name: str = "Your Company"
    logo_url: str = "https://your-company-logo-link.com/logo.png"
    team_name: str = "Your Newsletter Team"


class Settings(BaseModel):
    relay: RelayConfig = Field(default_factory=RelayConfig)
    branding: BrandingConfig = Field(default_factory=BrandingConfig)
    dispatch_mode: DispatchMode = DispatchMode.SEQUENTIAL
    dispatch_concurrency: int = 1
    cors_origins: List[str] = ["*"]
    template_dir: str = os.path.join(os.path.dirname(os.path.abspath(__file__)), "executor", "templates")
    log_level: str = "INFO"
    log_file: Optional[str] = "email.log"
    port: int = 5000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Builds the process settings from environment variables.

    A .env file is loaded first (without overriding variables that are
    already set). Invalid values raise ValueError so a misconfigured
    service fails at startup instead of on the first request.
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))

    username = os.getenv("EMAIL_USER")
    relay = RelayConfig(
        provider=os.getenv("RELAY_PROVIDER", "smtp").strip().lower(),
        host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
        port=_env_int("SMTP_PORT", 587),
        username=username,
        password=os.getenv("EMAIL_PASS"),
        use_tls=_env_bool("SMTP_USE_TLS", True),
        use_ssl=_env_bool("SMTP_USE_SSL", False),
        timeout_seconds=_env_int("SMTP_TIMEOUT", 30),
        from_email=os.getenv("EMAIL_FROM") or username,
        from_name=os.getenv("EMAIL_FROM_NAME", "Your Company"),
    )

    branding = BrandingConfig(
        company_name=os.getenv("NEWSLETTER_COMPANY_NAME", BrandingConfig().company_name),
        logo_url=os.getenv("NEWSLETTER_LOGO_URL", BrandingConfig().logo_url),
        team_name=os.getenv("NEWSLETTER_TEAM_NAME", BrandingConfig().team_name),
    )

    raw_mode = os.getenv("DISPATCH_MODE", DispatchMode.SEQUENTIAL.value).strip().lower()
    try:
        mode = DispatchMode(raw_mode)
    except ValueError:
        raise ValueError(f"DISPATCH_MODE must be one of {[m.value for m in DispatchMode]}, got {raw_mode!r}")

    concurrency = _env_int("DISPATCH_CONCURRENCY", 1)
    if concurrency < 1:
        raise ValueError("DISPATCH_CONCURRENCY must be at least 1")

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"LOG_LEVEL must be a logging level name, got {log_level!r}")

    log_file = os.getenv("LOG_FILE", "email.log").strip() or None

    settings = Settings(
        relay=relay,
        branding=branding,
        dispatch_mode=mode,
        dispatch_concurrency=concurrency,
        cors_origins=_env_list("CORS_ORIGINS", ["*"]),
        log_level=log_level,
        log_file=log_file,
        port=_env_int("PORT", 5000),
    )
    template_dir = os.getenv("TEMPLATE_DIR")
    if template_dir:
        settings.template_dir = template_dir
    return settings
