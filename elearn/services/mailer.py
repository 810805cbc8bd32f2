"""Outbound e-mail over SMTP with Jinja2 HTML templates."""
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from jinja2 import Environment, FileSystemLoader, select_autoescape

from elearn.core.config import BASE_DIR, Settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """The message could not be handed to the SMTP server."""


class Mailer:
    """Renders templates and sends them through the configured SMTP relay.

    ``smtplib`` is blocking, so each send runs in a worker thread.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.templates = Environment(
            loader=FileSystemLoader(str(BASE_DIR / "templates")),
            autoescape=select_autoescape(["html"]),
        )

    def render_verification_email(self, name: str, code: str) -> str:
        template = self.templates.get_template("verification_email.html")
        return template.render(
            name=name,
            code=code,
            sender_name=self.settings.mail_from_name,
            ttl_minutes=self.settings.verification_code_ttl_minutes,
        )

    async def send_verification_email(self, to_email: str, code: str, name: str) -> None:
        html = self.render_verification_email(name, code)
        await self.send(to_email, "Email Verification Code", html)

    async def send(self, to_email: str, subject: str, body_html: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.settings.mail_from_name, self.settings.mail_from_address))
        msg["To"] = to_email
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(body_html, subtype="html")
        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Sending %r to %s failed: %s", subject, to_email, exc)
            raise MailDeliveryError(str(exc)) from exc
        logger.info("Sent %r to %s", subject, to_email)

    def _deliver(self, msg: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=s.smtp_timeout) as smtp:
            if s.smtp_use_tls:
                smtp.starttls()
            if s.smtp_username and s.smtp_password:
                smtp.login(s.smtp_username, s.smtp_password)
            smtp.send_message(msg)
