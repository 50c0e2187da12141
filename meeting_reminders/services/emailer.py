from __future__ import annotations

import os
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional

import httpx

from meeting_reminders.core.config import AppConfig, load_config
from meeting_reminders.core.errors import EmailConfigurationError, EmailDeliveryError
from meeting_reminders.core.models import EmailRecipient


SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


def _include_plaintext() -> bool:
    """Check if plaintext should be included in emails."""
    return os.getenv("INCLUDE_PLAINTEXT", "true").lower() == "true"


def _preview_subject_suffix() -> str:
    """Get the preview subject suffix for console driver."""
    return os.getenv("PREVIEW_SUBJECT_SUFFIX", " [Preview]")


class Emailer:
    """
    One call dispatches one message to every recipient.

    Delivery is all-or-nothing from the caller's point of view: any failure
    raises EmailDeliveryError and nothing reports per-recipient status.
    """

    driver: str

    def send(
        self,
        subject: str,
        html: str,
        recipients: List[EmailRecipient],
        sender: str,
        plaintext: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> Optional[str]:
        raise NotImplementedError


class ConsoleEmailer(Emailer):
    driver = "console"

    def send(
        self,
        subject: str,
        html: str,
        recipients: List[EmailRecipient],
        sender: str,
        plaintext: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> Optional[str]:
        subject_with_suffix = subject + _preview_subject_suffix()

        # Simulate a send. Avoid printing full HTML in logs.
        preview_len = min(len(html), 200)
        to = ",".join(str(r.email) for r in recipients)
        print(f"[console-email] from={sender} to={to} subject={subject_with_suffix} html_preview={html[:preview_len]!r}...")

        if plaintext and _include_plaintext():
            plaintext_preview_len = min(len(plaintext), 200)
            print(f"[console-email] plaintext_preview={plaintext[:plaintext_preview_len]!r}...")

        return f"MSG-LOCAL-{int(time.time()*1000)}"


class SmtpEmailer(Emailer):
    driver = "smtp"

    def __init__(self, host: str, port: int, username: str, password: str, use_tls: bool):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(
        self,
        subject: str,
        html: str,
        recipient: EmailRecipient,
        sender: str,
        plaintext: Optional[str],
        sender_name: Optional[str],
    ):
        if plaintext and _include_plaintext():
            message = MIMEMultipart("alternative")
            message.attach(MIMEText(plaintext, "plain", "utf-8"))
            message.attach(MIMEText(html, "html", "utf-8"))
        else:
            message = MIMEText(html, "html", "utf-8")
        message["Subject"] = subject
        message["From"] = formataddr((sender_name, sender)) if sender_name else sender
        message["To"] = formataddr((recipient.name, str(recipient.email))) if recipient.name else str(recipient.email)
        return message

    def send(
        self,
        subject: str,
        html: str,
        recipients: List[EmailRecipient],
        sender: str,
        plaintext: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> Optional[str]:
        if not recipients:
            return None
        try:
            server = smtplib.SMTP(self.host, self.port)
        except Exception as exc:
            raise EmailDeliveryError(f"SMTP send failed: {exc}", driver=self.driver) from exc
        # One message per recipient so attendees never see each other's address.
        try:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            for recipient in recipients:
                message = self._build_message(subject, html, recipient, sender, plaintext, sender_name)
                server.sendmail(sender, [str(recipient.email)], message.as_string())
            server.quit()
        except Exception as exc:
            server.close()
            raise EmailDeliveryError(f"SMTP send failed: {exc}", driver=self.driver) from exc
        return None


class SendgridEmailer(Emailer):
    driver = "sendgrid"

    def __init__(self, api_key: str, timeout: float = 15):
        self.api_key = api_key
        self.timeout = timeout

    def build_payload(
        self,
        subject: str,
        html: str,
        recipients: List[EmailRecipient],
        sender: str,
        plaintext: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> dict:
        content = [{"type": "text/html", "value": html}]
        if plaintext and _include_plaintext():
            content.insert(0, {"type": "text/plain", "value": plaintext})

        personalizations = []
        for recipient in recipients:
            to = {"email": str(recipient.email)}
            if recipient.name:
                to["name"] = recipient.name
            personalizations.append({"to": [to]})

        sender_block = {"email": sender}
        if sender_name:
            sender_block["name"] = sender_name

        return {
            "personalizations": personalizations,
            "from": sender_block,
            "subject": subject,
            "content": content,
        }

    def send(
        self,
        subject: str,
        html: str,
        recipients: List[EmailRecipient],
        sender: str,
        plaintext: Optional[str] = None,
        sender_name: Optional[str] = None,
    ) -> Optional[str]:
        if not recipients:
            return None
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        data = self.build_payload(subject, html, recipients, sender, plaintext, sender_name)
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(SENDGRID_URL, headers=headers, json=data)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"SendGrid request failed: {exc}", driver=self.driver) from exc
        if resp.status_code in (200, 202):
            return resp.headers.get("X-Message-Id") or None
        raise EmailDeliveryError(f"SendGrid API error: {resp.status_code}", driver=self.driver)


def select_emailer_from_env(config: Optional[AppConfig] = None) -> Emailer:
    cfg = config or load_config()
    driver = cfg.mail_driver
    if driver == "console":
        return ConsoleEmailer()
    if driver == "smtp":
        if not cfg.smtp_host or not cfg.smtp_port:
            raise EmailConfigurationError("SMTP configuration missing: SMTP_HOST/SMTP_PORT required", driver="smtp")
        return SmtpEmailer(
            host=cfg.smtp_host,
            port=cfg.smtp_port,
            username=cfg.smtp_username or "",
            password=cfg.smtp_password or "",
            use_tls=cfg.smtp_use_tls,
        )
    if driver == "sendgrid":
        if not cfg.sendgrid_api_key:
            raise EmailConfigurationError("SENDGRID_API_KEY missing", driver="sendgrid")
        return SendgridEmailer(api_key=cfg.sendgrid_api_key)
    raise EmailConfigurationError(f"Unsupported MAIL_DRIVER: {driver}", driver=driver)
