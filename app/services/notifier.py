"""
Template-driven email notifications.

``Notifier.send`` renders one of the HTML templates under ``app/templates``
and hands it to the configured ``Emailer``. It never raises: delivery
problems come back as ``NotifyResult(success=False, error=...)``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import AppConfig
from app.observability.logger import _sanitize_subject, log_event, log_warning, timing
from app.services.emailer import Attachment, Emailer, select_emailer

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

# kind -> (template file, subject template)
TEMPLATES: Dict[str, tuple] = {
    "german_program": ("german_program.html", "New German Program Application - {{ name }}"),
    "consultation_admin": (
        "consultation_admin.html",
        "New Consultation Booking - {{ fullName }} ({{ interestedService }})",
    ),
    "consultation_user": ("consultation_user.html", "Consultation Booking Confirmed - {{ id }}"),
    "consultation_confirmed": ("consultation_confirmed.html", "Your Consultation Is Confirmed - {{ id }}"),
}


@dataclass
class NotifyResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def render_template(template_kind: str, data: Dict[str, Any]) -> tuple:
    """Return ``(subject, html)`` for a template kind."""
    if template_kind not in TEMPLATES:
        raise ValueError(f"Unknown template kind: {template_kind}")
    filename, subject_template = TEMPLATES[template_kind]
    context = {**data, "generated_at": datetime.now().strftime("%d %B %Y, %H:%M")}
    subject = _env.from_string(subject_template).render(context)
    html = _env.get_template(filename).render(context)
    return subject, html


class Notifier:
    def __init__(self, emailer: Optional[Emailer], sender: str):
        self.emailer = emailer
        self.sender = sender

    @property
    def driver(self) -> str:
        return getattr(self.emailer, "driver", "unavailable")

    def send(
        self,
        template_kind: str,
        recipients: List[str],
        data: Dict[str, Any],
        cc: Optional[List[str]] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> NotifyResult:
        if self.emailer is None:
            logger.error("Email transport not initialized")
            return NotifyResult(success=False, error="Email service not available")

        try:
            subject, html = render_template(template_kind, data)
            with timing(f"notify_{template_kind}") as timer:
                message_id = self.emailer.send(
                    subject=subject,
                    html=html,
                    recipients=recipients,
                    sender=self.sender,
                    cc=cc,
                    attachments=attachments,
                )
        except Exception as exc:
            log_warning("Notification failed", {"template": template_kind, "driver": self.driver, "error": str(exc)})
            return NotifyResult(success=False, error=str(exc))

        log_event(
            "sent",
            duration_ms=timer.get_duration_ms(),
            template=template_kind,
            driver=self.driver,
            subject=_sanitize_subject(subject),
            recipients_count=len(recipients) + len(cc or []),
            message_id=message_id,
        )
        return NotifyResult(success=True, message_id=message_id)


def create_notifier(config: AppConfig) -> Notifier:
    """Notifier for the configured mail driver; a broken driver config leaves it unavailable."""
    try:
        emailer = select_emailer(config)
    except Exception as exc:
        logger.error(f"Error initializing email transport: {exc}")
        emailer = None
    return Notifier(emailer=emailer, sender=config.default_sender)
