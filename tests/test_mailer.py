"""Unit tests for mail/sender.py -- template rendering and SMTP error mapping.

smtplib.SMTP is patched; nothing leaves the process.
"""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from core.config import get_settings
from core.errors import MailAuthenticationFailed, MailDeliveryFailed
from mail.sender import Mailer

LINK = "https://app.degenius.test/student/verify-email/?userId=u1&token=abc"


@pytest.fixture
def settings():
    return get_settings().model_copy(
        update={"smtp_username": "mailer", "smtp_password": "secret", "smtp_use_tls": True, "smtp_use_ssl": False}
    )


@pytest.fixture
def smtp():
    with patch("mail.sender.smtplib.SMTP") as cls:
        server = MagicMock()
        server.__enter__.return_value = server
        server.send_message.return_value = {}
        cls.return_value = server
        yield cls, server


def test_render_escapes_and_includes_link(settings):
    html = Mailer(settings).render("email_verification.html", first_name="<Ada>", link=LINK)
    assert "&lt;Ada&gt;" in html
    assert "userId=u1&amp;token=abc" in html


def test_send_verification(settings, smtp):
    cls, server = smtp
    Mailer(settings).send_verification("ada@x.com", "Ada", LINK)

    cls.assert_called_once_with(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer", "secret")
    msg = server.send_message.call_args.args[0]
    assert msg["To"] == "ada@x.com"
    assert msg["Subject"] == "Email verification"
    assert msg["From"] == settings.mail_sender
    assert LINK in msg.get_body(preferencelist=("plain",)).get_content()


def test_send_password_reset_subject(settings, smtp):
    _, server = smtp
    Mailer(settings).send_password_reset("ada@x.com", "Ada", LINK)
    assert server.send_message.call_args.args[0]["Subject"] == "Password reset"


def test_no_login_without_credentials(settings, smtp):
    _, server = smtp
    anon = settings.model_copy(update={"smtp_username": "", "smtp_password": ""})
    Mailer(anon).send_verification("ada@x.com", "Ada", LINK)
    server.login.assert_not_called()


def test_authentication_failure(settings, smtp):
    _, server = smtp
    server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
    with pytest.raises(MailAuthenticationFailed) as exc:
        Mailer(settings).send_verification("ada@x.com", "Ada", LINK)
    assert exc.value.status_code == 500
    assert "email credentials" in exc.value.message


def test_connection_failure(settings, smtp):
    cls, _ = smtp
    cls.side_effect = ConnectionRefusedError("relay down")
    with pytest.raises(MailDeliveryFailed) as exc:
        Mailer(settings).send_verification("ada@x.com", "Ada", LINK)
    assert not isinstance(exc.value, MailAuthenticationFailed)
    assert exc.value.status_code == 502


def test_refused_recipient(settings, smtp):
    _, server = smtp
    server.send_message.return_value = {"ada@x.com": (550, b"no such user")}
    with pytest.raises(MailDeliveryFailed):
        Mailer(settings).send_verification("ada@x.com", "Ada", LINK)
