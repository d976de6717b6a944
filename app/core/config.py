import os
import tempfile
from typing import Optional

from pydantic import BaseModel


class DeploymentProfile(BaseModel):
    """Preset that tunes the news proxy for how the process is hosted."""

    name: str
    cache_capacity: int
    sweep_on_request: bool
    sweep_interval_seconds: Optional[int]
    max_page_size: int
    rate_limit_max: int
    timeout_seconds: float
    max_headline_page: int = 5
    max_search_page: int = 3


# Long-lived process: background sweep, bigger pages, stricter per-client cap
SERVER_PROFILE = DeploymentProfile(
    name="server",
    cache_capacity=100,
    sweep_on_request=False,
    sweep_interval_seconds=60,
    max_page_size=100,
    rate_limit_max=100,
    timeout_seconds=10.0,
)

# Per-invocation runtime: no timers survive between calls
SERVERLESS_PROFILE = DeploymentProfile(
    name="serverless",
    cache_capacity=50,
    sweep_on_request=True,
    sweep_interval_seconds=None,
    max_page_size=50,
    rate_limit_max=200,
    timeout_seconds=8.0,
)

PROFILES = {p.name: p for p in (SERVER_PROFILE, SERVERLESS_PROFILE)}


class AppConfig(BaseModel):
    app_env: str = "production"
    profile: DeploymentProfile = SERVER_PROFILE
    news_api_key: Optional[str] = None
    news_api_base: str = "https://newsapi.org/v2"
    rate_limit_window_seconds: int = 15 * 60
    mail_driver: str = "console"
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    sendgrid_api_key: Optional[str] = None
    default_sender: str = "noreply@advisory.local"
    admin_email: str = "admin@advisory.local"
    data_dir: str = os.path.join(tempfile.gettempdir(), "advisory-data")
    upload_dir: str = os.path.join(tempfile.gettempdir(), "advisory-uploads")
    chatbot_flow_path: Optional[str] = None

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def rate_limit_enabled(self) -> bool:
        return not self.is_development


def _int_env(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw.isdigit() else None


def _select_profile() -> DeploymentProfile:
    name = os.getenv("DEPLOYMENT_PROFILE", "server").strip().lower()
    profile = PROFILES.get(name, SERVER_PROFILE)

    overrides = {}
    capacity = _int_env("NEWS_CACHE_CAPACITY")
    if capacity:
        overrides["cache_capacity"] = capacity
    rate_max = _int_env("NEWS_RATE_LIMIT_MAX")
    if rate_max:
        overrides["rate_limit_max"] = rate_max
    timeout_ms = _int_env("NEWS_TIMEOUT_MS")
    if timeout_ms:
        overrides["timeout_seconds"] = timeout_ms / 1000.0

    return profile.model_copy(update=overrides) if overrides else profile


def load_config() -> AppConfig:
    defaults = AppConfig()
    return AppConfig(
        app_env=os.getenv("APP_ENV", "production").lower(),
        profile=_select_profile(),
        news_api_key=os.getenv("NEWS_API_KEY") or None,
        news_api_base=os.getenv("NEWS_API_BASE", defaults.news_api_base),
        mail_driver=os.getenv("MAIL_DRIVER", "console").lower(),
        smtp_host=os.getenv("SMTP_HOST"),
        smtp_port=_int_env("SMTP_PORT"),
        smtp_username=os.getenv("SMTP_USERNAME"),
        smtp_password=os.getenv("SMTP_PASSWORD"),
        smtp_use_tls=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
        sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
        default_sender=os.getenv("DEFAULT_SENDER", defaults.default_sender),
        admin_email=os.getenv("ADMIN_EMAIL", defaults.admin_email),
        data_dir=os.getenv("DATA_DIR", defaults.data_dir),
        upload_dir=os.getenv("UPLOAD_DIR", defaults.upload_dir),
        chatbot_flow_path=os.getenv("CHATBOT_FLOW_PATH"),
    )
