from __future__ import annotations

import base64
import logging
import mimetypes
import time
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from pathlib import Path
from typing import List, Optional

import httpx

from app.core.config import AppConfig
from app.observability.logger import _sanitize_subject

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when a driver gives up on a message."""


@dataclass
class Attachment:
    filename: str
    path: str
    content_type: Optional[str] = None

    def read(self) -> bytes:
        return Path(self.path).read_bytes()

    def mime_type(self) -> str:
        return self.content_type or mimetypes.guess_type(self.filename)[0] or "application/octet-stream"


class Emailer:
    driver: str

    def send(
        self,
        subject: str,
        html: str,
        recipients: List[str],
        sender: str,
        plaintext: Optional[str] = None,
        cc: Optional[List[str]] = None,
        attachments: Optional[List[Attachment]] = None,
    ) -> Optional[str]:
        raise NotImplementedError


class ConsoleEmailer(Emailer):
    driver = "console"

    def send(self, subject, html, recipients, sender, plaintext=None, cc=None, attachments=None) -> Optional[str]:
        # Simulate a send. Avoid logging full HTML.
        preview_len = min(len(html), 200)
        logger.info(
            f"[console-email] from={sender} to={','.join(recipients)} cc={','.join(cc or [])} "
            f"subject={_sanitize_subject(subject)} attachments={len(attachments or [])} "
            f"html_preview={html[:preview_len]!r}..."
        )
        return f"DEV-{int(time.time()*1000)}"


class SmtpEmailer(Emailer):
    driver = "smtp"

    def __init__(self, host: str, port: int, username: str, password: str, use_tls: bool):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(self, subject, html, recipients, sender, plaintext, cc, attachments) -> MIMEMultipart:
        body = MIMEMultipart("alternative")
        if plaintext:
            body.attach(MIMEText(plaintext, "plain", "utf-8"))
        body.attach(MIMEText(html, "html", "utf-8"))

        if attachments:
            message = MIMEMultipart("mixed")
            message.attach(body)
            for attachment in attachments:
                _, subtype = attachment.mime_type().split("/", 1)
                part = MIMEApplication(attachment.read(), _subtype=subtype)
                part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
                message.attach(part)
        else:
            message = body

        message["Subject"] = subject
        message["From"] = sender
        message["To"] = ", ".join(recipients)
        if cc:
            message["Cc"] = ", ".join(cc)
        message["Message-ID"] = make_msgid()
        return message

    def _deliver(self, sender: str, envelope_to: List[str], message: MIMEMultipart) -> None:
        import smtplib

        server = smtplib.SMTP(self.host, self.port)
        try:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(sender, envelope_to, message.as_string())
        finally:
            server.quit()

    def send(self, subject, html, recipients, sender, plaintext=None, cc=None, attachments=None) -> Optional[str]:
        message = self._build_message(subject, html, recipients, sender, plaintext, cc, attachments)
        envelope_to = list(recipients) + list(cc or [])

        backoffs = [0.2, 0.4, 0.8]
        last_exc: Exception | None = None
        for attempt, delay in enumerate(backoffs + [None], start=1):
            try:
                self._deliver(sender, envelope_to, message)
                return message["Message-ID"]
            except Exception as exc:
                last_exc = exc
                logger.warning(f"SMTP attempt {attempt} failed: {exc}")
                if delay is not None:
                    time.sleep(delay)
        raise EmailDeliveryError(f"SMTP send failed after retries: {last_exc}")


class SendgridEmailer(Emailer):
    driver = "sendgrid"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def send(self, subject, html, recipients, sender, plaintext=None, cc=None, attachments=None) -> Optional[str]:
        url = "https://api.sendgrid.com/v3/mail/send"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        content = [{"type": "text/html", "value": html}]
        if plaintext:
            content.insert(0, {"type": "text/plain", "value": plaintext})

        personalization = {"to": [{"email": r} for r in recipients]}
        if cc:
            personalization["cc"] = [{"email": r} for r in cc]

        data = {
            "personalizations": [personalization],
            "from": {"email": sender},
            "subject": subject,
            "content": content,
        }
        if attachments:
            data["attachments"] = [
                {
                    "content": base64.b64encode(a.read()).decode("ascii"),
                    "filename": a.filename,
                    "type": a.mime_type(),
                    "disposition": "attachment",
                }
                for a in attachments
            ]

        backoffs = [0.2, 0.4, 0.8]
        last_error: str | None = None
        for delay in backoffs + [None]:
            try:
                with httpx.Client(timeout=15) as client:
                    resp = client.post(url, headers=headers, json=data)
                if resp.status_code in (200, 202):
                    return resp.headers.get("X-Message-Id") or None
                last_error = f"{resp.status_code} {resp.text}"
            except httpx.HTTPError as exc:
                last_error = str(exc)
            if delay is not None:
                time.sleep(delay)
        raise EmailDeliveryError(f"SendGrid send failed after retries: {last_error}")


def select_emailer(config: AppConfig) -> Emailer:
    driver = config.mail_driver
    if driver == "console":
        return ConsoleEmailer()
    if driver == "smtp":
        if not config.smtp_host or not config.smtp_port:
            raise EmailDeliveryError("SMTP configuration missing: SMTP_HOST/SMTP_PORT required")
        return SmtpEmailer(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username or "",
            password=config.smtp_password or "",
            use_tls=config.smtp_use_tls,
        )
    if driver == "sendgrid":
        if not config.sendgrid_api_key:
            raise EmailDeliveryError("SENDGRID_API_KEY missing")
        return SendgridEmailer(api_key=config.sendgrid_api_key)
    raise EmailDeliveryError(f"Unsupported MAIL_DRIVER: {driver}")
