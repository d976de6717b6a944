"""
Test the email drivers and the template notifier.

This test verifies that:
1. SMTP sends multipart mail, with attachments and Cc on the envelope
2. Retry/backoff gives up with EmailDeliveryError
3. SendGrid payloads carry cc and base64 attachments
4. The notifier renders templates and never raises
"""

import base64
from unittest.mock import patch, MagicMock

import pytest

from app.core.config import AppConfig
from app.services.emailer import (
    Attachment,
    ConsoleEmailer,
    EmailDeliveryError,
    SendgridEmailer,
    SmtpEmailer,
    select_emailer,
)
from app.services.notifier import Notifier, create_notifier, render_template


def _smtp() -> SmtpEmailer:
    return SmtpEmailer(
        host="smtp.example.com",
        port=587,
        username="mailer@example.com",
        password="test-password",
        use_tls=True,
    )


class TestSmtpEmailer:
    """Test SMTP delivery."""

    def test_send_multipart_email(self):
        with patch("smtplib.SMTP") as mock_smtp:
            mock_server = MagicMock()
            mock_smtp.return_value = mock_server

            message_id = _smtp().send(
                subject="Test Subject",
                html="<h1>Test HTML</h1>",
                recipients=["admin@example.com"],
                sender="mailer@example.com",
                plaintext="Test Plain Text",
                cc=["asha@example.com"],
            )

            mock_smtp.assert_called_once_with("smtp.example.com", 587)
            mock_server.starttls.assert_called_once()
            mock_server.login.assert_called_once_with("mailer@example.com", "test-password")
            mock_server.quit.assert_called_once()

            sender, envelope_to, raw = mock_server.sendmail.call_args[0]
            assert sender == "mailer@example.com"
            assert envelope_to == ["admin@example.com", "asha@example.com"]
            assert "Cc: asha@example.com" in raw
            assert "multipart/alternative" in raw
            assert message_id and message_id.startswith("<")

    def test_send_with_attachment(self, tmp_path):
        resume = tmp_path / "cv.pdf"
        resume.write_bytes(b"%PDF-1.4")

        with patch("smtplib.SMTP") as mock_smtp:
            mock_server = MagicMock()
            mock_smtp.return_value = mock_server

            _smtp().send(
                subject="New Consultation Booking",
                html="<p>hi</p>",
                recipients=["admin@example.com"],
                sender="mailer@example.com",
                attachments=[Attachment(filename="cv.pdf", path=str(resume), content_type="application/pdf")],
            )

            raw = mock_server.sendmail.call_args[0][2]
            assert "multipart/mixed" in raw
            assert 'filename="cv.pdf"' in raw
            assert base64.b64encode(b"%PDF-1.4").decode() in raw

    def test_retries_then_gives_up(self):
        with patch("smtplib.SMTP", side_effect=OSError("connection refused")) as mock_smtp:
            with patch("app.services.emailer.time.sleep") as mock_sleep:
                with pytest.raises(EmailDeliveryError):
                    _smtp().send("s", "<p>x</p>", ["a@example.com"], "mailer@example.com")

        assert mock_smtp.call_count == 4
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.2, 0.4, 0.8]

    def test_recovers_on_retry(self):
        mock_server = MagicMock()
        with patch("smtplib.SMTP", side_effect=[OSError("busy"), mock_server]):
            with patch("app.services.emailer.time.sleep"):
                message_id = _smtp().send("s", "<p>x</p>", ["a@example.com"], "mailer@example.com")

        assert message_id
        mock_server.sendmail.assert_called_once()


class TestSendgridEmailer:
    def test_payload(self, tmp_path):
        resume = tmp_path / "cv.txt"
        resume.write_bytes(b"resume text")

        with patch("app.services.emailer.httpx.Client") as mock_client_cls:
            client = mock_client_cls.return_value.__enter__.return_value
            client.post.return_value = MagicMock(status_code=202, headers={"X-Message-Id": "sg-1"})

            message_id = SendgridEmailer(api_key="sg-key").send(
                subject="Subject",
                html="<p>x</p>",
                recipients=["admin@example.com"],
                sender="noreply@example.com",
                cc=["asha@example.com"],
                attachments=[Attachment(filename="cv.txt", path=str(resume))],
            )

        assert message_id == "sg-1"
        payload = client.post.call_args.kwargs["json"]
        assert payload["personalizations"][0]["cc"] == [{"email": "asha@example.com"}]
        assert payload["attachments"][0]["type"] == "text/plain"
        assert base64.b64decode(payload["attachments"][0]["content"]) == b"resume text"
        assert client.post.call_args.kwargs["headers"]["Authorization"] == "Bearer sg-key"

    def test_failure_raises(self):
        with patch("app.services.emailer.httpx.Client") as mock_client_cls:
            client = mock_client_cls.return_value.__enter__.return_value
            client.post.return_value = MagicMock(status_code=401, text="unauthorized")
            with patch("app.services.emailer.time.sleep"):
                with pytest.raises(EmailDeliveryError):
                    SendgridEmailer(api_key="bad").send("s", "<p>x</p>", ["a@example.com"], "noreply@example.com")

        assert client.post.call_count == 4


class TestSelectEmailer:
    def test_console(self):
        assert isinstance(select_emailer(AppConfig(mail_driver="console")), ConsoleEmailer)

    def test_smtp_requires_host(self):
        with pytest.raises(EmailDeliveryError):
            select_emailer(AppConfig(mail_driver="smtp"))

    def test_smtp(self):
        emailer = select_emailer(AppConfig(mail_driver="smtp", smtp_host="smtp.example.com", smtp_port=587))
        assert isinstance(emailer, SmtpEmailer)
        assert emailer.port == 587

    def test_unsupported(self):
        with pytest.raises(EmailDeliveryError):
            select_emailer(AppConfig(mail_driver="pigeon"))


class TestNotifier:
    RECORD = {
        "id": "CONS-1",
        "fullName": "Asha Rao",
        "email": "asha@example.com",
        "phone": "9876543210",
        "age": "24",
        "education": "B.Tech",
        "currentStatus": "Working",
        "interestedService": "Germany Work Visa",
        "resume": {"originalName": "cv.pdf", "size": 2048},
    }

    def test_render_admin_template(self):
        subject, html = render_template("consultation_admin", self.RECORD)

        assert subject == "New Consultation Booking - Asha Rao (Germany Work Visa)"
        assert "CONS-1" in html
        assert "cv.pdf (2.0 KB)" in html

    def test_render_escapes_input(self):
        _, html = render_template("consultation_user", {**self.RECORD, "fullName": "<script>x</script>"})
        assert "<script>" not in html

    def test_unknown_template(self):
        with pytest.raises(ValueError):
            render_template("newsletter", {})

    def test_send_failure_is_reported(self):
        emailer = MagicMock()
        emailer.send.side_effect = EmailDeliveryError("down")

        result = Notifier(emailer=emailer, sender="noreply@example.com").send(
            "consultation_user", ["asha@example.com"], self.RECORD
        )

        assert result.success is False
        assert result.error == "down"

    def test_unavailable_transport(self):
        notifier = create_notifier(AppConfig(mail_driver="smtp"))

        result = notifier.send("consultation_user", ["asha@example.com"], self.RECORD)

        assert notifier.emailer is None
        assert result.success is False
        assert result.error == "Email service not available"

    def test_console_send(self):
        result = create_notifier(AppConfig()).send("consultation_user", ["asha@example.com"], self.RECORD)

        assert result.success is True
        assert result.message_id.startswith("DEV-")
