"""
mail/sender.py -- SMTP transport for account emails, rendered from Jinja2 templates.

Mailer is a process-scoped collaborator: api/main.py builds one in the
lifespan and the account service receives it per request. Tests swap in a
recording fake with the same send_* methods.

Delivery contract:
  send() returns only after the SMTP server accepted the message for the
  recipient. Every transport failure is raised as MailDeliveryFailed, with
  authentication failures split out as MailAuthenticationFailed so the
  centralized handler can tell "our credentials are wrong" from "the relay
  is down". Nothing is retried.

Layer rule: imports only stdlib, third-party libraries, and core/.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import Settings
from core.errors import MailAuthenticationFailed, MailDeliveryFailed

logger = logging.getLogger("degenius.mail")

_TEMPLATE_DIR = Path(__file__).parent / "templates"


class Mailer:
    """Render and send the account lifecycle emails.

    Usage:
        mailer = Mailer(get_settings())
        mailer.send_verification("ada@x.com", "Ada", link)
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._env = Environment(
            loader=FileSystemLoader(_TEMPLATE_DIR),
            autoescape=select_autoescape(["html"]),
        )

    # ------------------------------------------------------------------
    # Account emails
    # ------------------------------------------------------------------

    def send_verification(self, to: str, first_name: str, link: str) -> None:
        self.send(
            to,
            "Email verification",
            "email_verification.html",
            text=f"Welcome {first_name}. Open this link to verify your email: {link}",
            first_name=first_name,
            link=link,
        )

    def send_password_reset(self, to: str, first_name: str, link: str) -> None:
        self.send(
            to,
            "Password reset",
            "reset_password.html",
            text=f"Hello {first_name}. Open this link to reset your password: {link}",
            first_name=first_name,
            link=link,
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def render(self, template: str, **context) -> str:
        return self._env.get_template(template).render(app_name=self.settings.app_name, **context)

    def send(self, to: str, subject: str, template: str, text: str, **context) -> None:
        """Build a multipart (text + HTML) message and hand it to the SMTP relay.

        Raises:
            MailAuthenticationFailed: the relay rejected our credentials.
            MailDeliveryFailed: connection failure, protocol error, or the
                recipient was refused.
        """
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.mail_sender
        msg["To"] = to
        msg.set_content(text)
        msg.add_alternative(self.render(template, **context), subtype="html")

        cfg = self.settings
        try:
            if cfg.smtp_use_ssl:
                server = smtplib.SMTP_SSL(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout_seconds)
            else:
                server = smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout_seconds)
            with server:
                if cfg.smtp_use_tls and not cfg.smtp_use_ssl:
                    server.starttls()
                if cfg.smtp_username and cfg.smtp_password:
                    server.login(cfg.smtp_username, cfg.smtp_password)
                refused = server.send_message(msg)
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed for %s: %s", cfg.smtp_username or "<anonymous>", exc)
            raise MailAuthenticationFailed() from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail to %s failed (%s): %s", to, subject, exc)
            raise MailDeliveryFailed() from exc

        if refused:
            logger.error("Mail to %s refused by relay: %r", to, refused)
            raise MailDeliveryFailed()
        logger.info("Sent %r to %s", subject, to)
