"""
Email Service.

Renders order emails from Jinja2 templates and sends them over SMTP.
``smtplib`` is blocking, so the actual send runs in a worker thread.

Order confirmations carry a deterministic Message-ID
(``<order-<number>@<sender domain>>``); later mails about the same order
reply into that thread.
"""

import asyncio
import logging
import os
import smtplib
import uuid
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import format_datetime
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from backend.app.core import clock
from backend.app.core.config import settings
from backend.app.domain.orders.state_machine import status_label
from backend.app.domain.orders.values import lines_from_json
from backend.app.models.notification import NotificationKind
from backend.app.models.order_enums import DeliveryStatus

logger = logging.getLogger(__name__)

_templates_dir = os.path.join(os.path.dirname(__file__), "..", "templates")
_jinja_env = Environment(
    loader=FileSystemLoader(_templates_dir),
    autoescape=select_autoescape(["html", "xml"]),
)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


def sender_domain() -> str:
    sender = settings.mail_from.strip()
    return sender.split("@")[-1] if "@" in sender else "localhost"


def order_thread_id(order_number: str) -> str:
    """Message-ID used for an order's confirmation email and as the thread root."""
    return f"<order-{order_number}@{sender_domain()}>"


def render_email(template_name: str, **context) -> str:
    base = {
        "app_name": settings.app_name,
        "frontend_url": settings.frontend_url.rstrip("/"),
    }
    base.update(context or {})
    return _jinja_env.get_template(template_name).render(**base)


class EmailService:
    """Builds and sends the three order notification emails."""

    async def deliver(self, kind: NotificationKind, order, recipient: str, payload: Optional[Dict[str, Any]] = None) -> EmailResult:
        """Render and send one outbox message."""
        payload = payload or {}
        if kind == NotificationKind.ORDER_CONFIRMATION:
            return await self.send_order_confirmation(order, recipient)
        if kind == NotificationKind.STATUS_UPDATE:
            return await self.send_status_update(order, recipient, payload)
        if kind == NotificationKind.PAYMENT_CONFIRMATION:
            return await self.send_payment_confirmation(order, recipient, payload)
        return EmailResult(success=False, error=f"Unknown notification kind {kind}")

    async def send_order_confirmation(self, order, recipient: str) -> EmailResult:
        html = render_email(
            "order_confirmation.html",
            order=order,
            lines=lines_from_json(order.items),
            tracking_url=self._tracking_url(order),
        )
        return await self.send(
            to_addr=recipient,
            subject=f"Order Confirmation - {order.order_number}",
            html=html,
            message_id=order_thread_id(order.order_number),
        )

    async def send_status_update(self, order, recipient: str, payload: Dict[str, Any]) -> EmailResult:
        new_status = DeliveryStatus(payload["new_status"])
        old_status = DeliveryStatus(payload["old_status"]) if payload.get("old_status") else None
        html = render_email(
            "order_status_update.html",
            order=order,
            old_label=status_label(old_status) if old_status else None,
            new_label=status_label(new_status),
            notes=payload.get("notes"),
            tracking_url=self._tracking_url(order),
        )
        return await self.send(
            to_addr=recipient,
            subject=f"Order {order.order_number} - {status_label(new_status)}",
            html=html,
            in_reply_to=order.email_message_id,
        )

    async def send_payment_confirmation(self, order, recipient: str, payload: Dict[str, Any]) -> EmailResult:
        html = render_email(
            "payment_confirmation.html",
            order=order,
            transaction_number=payload.get("transaction_number"),
            amount=payload.get("amount"),
            currency=payload.get("currency") or order.currency_code,
            payment_method=payload.get("payment_method"),
        )
        return await self.send(
            to_addr=recipient,
            subject=f"Payment Received - {order.order_number}",
            html=html,
            in_reply_to=order.email_message_id,
        )

    async def send(
        self,
        to_addr: str,
        subject: str,
        html: str,
        message_id: Optional[str] = None,
        in_reply_to: Optional[str] = None,
    ) -> EmailResult:
        if not settings.smtp_host:
            logger.error("SMTP not configured; cannot send email", extra={"to": to_addr, "subject": subject})
            return EmailResult(success=False, error="SMTP not configured")

        message_id = message_id or f"<{uuid.uuid4()}@{sender_domain()}>"
        msg = self._build_message(to_addr, subject, html, message_id, in_reply_to)

        try:
            await asyncio.to_thread(self._send_blocking, to_addr, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP send failed", extra={"to": to_addr, "error": str(exc)})
            return EmailResult(success=False, error=str(exc))

        logger.info("Email sent", extra={"to": to_addr, "message_id": message_id})
        return EmailResult(success=True, message_id=message_id)

    @staticmethod
    def _build_message(to_addr: str, subject: str, html: str, message_id: str, in_reply_to: Optional[str]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{settings.mail_from_name} <{settings.mail_from}>"
        msg["To"] = to_addr
        msg["Message-ID"] = message_id
        msg["Date"] = format_datetime(clock.now())
        if in_reply_to:
            msg["In-Reply-To"] = in_reply_to
            msg["References"] = in_reply_to
        msg.attach(MIMEText("Open this message in an HTML-capable email client.", "plain", _charset="utf-8"))
        msg.attach(MIMEText(html or "", "html", _charset="utf-8"))
        return msg

    @staticmethod
    def _send_blocking(to_addr: str, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.mail_from, [to_addr], msg.as_string())

    @staticmethod
    def _tracking_url(order) -> str:
        return f"{settings.frontend_url.rstrip('/')}/track?order_number={order.order_number}"


email_service = EmailService()
