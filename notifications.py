"""
Order notifications.

Two collaborators are told about each new order: the mailer (admin
notification plus an optional customer confirmation) and the chat
collaborator (a text to the admin phone, only when it reports ready).
Both run after the order is stored; a failure is logged and never
reaches the customer or undoes the order.
"""

import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from html import escape
from typing import Any, Dict, List, Optional

import httpx
import structlog

import config

logger = structlog.get_logger(__name__)


def _money(value: Any) -> str:
    return f"SYP {float(value or 0):.2f}"


def order_email_html(order: Dict[str, Any]) -> str:
    rows = []
    for item in order.get("items", []):
        details = []
        if item.get("product_description"):
            details.append(f'<div style="font-size:12px;color:#555;margin-top:4px;">{escape(item["product_description"])}</div>')
        if item.get("category_name"):
            details.append(f'<div style="font-size:12px;color:#555;"><strong>Category:</strong> {escape(item["category_name"])}</div>')
        if item.get("sub_category_name"):
            details.append(f'<div style="font-size:12px;color:#555;"><strong>Sub-Category:</strong> {escape(item["sub_category_name"])}</div>')
        if item.get("sub_category_description"):
            details.append(f'<div style="font-size:12px;color:#555;">{escape(item["sub_category_description"])}</div>')
        line_total = (item.get("price") or 0) * (item.get("quantity") or 0)
        rows.append(
            "<tr>"
            f'<td style="padding:10px;border-bottom:1px solid #ddd;"><div style="font-weight:600">{escape(item.get("product_name") or "")}</div>{"".join(details)}</td>'
            f'<td style="padding:10px;border-bottom:1px solid #ddd;">{item.get("quantity")}</td>'
            f'<td style="padding:10px;border-bottom:1px solid #ddd;">{_money(line_total)}</td>'
            "</tr>"
        )
    customer = order.get("customer", {})
    return (
        "<h2>New Order Received</h2>"
        f"<p><strong>Order Number:</strong> {escape(order['order_number'])}</p>"
        "<h3>Customer Information</h3>"
        f"<p><strong>Name:</strong> {escape(customer.get('full_name', ''))}</p>"
        f"<p><strong>Phone:</strong> {escape(customer.get('phone_number', ''))}</p>"
        f"<p><strong>City:</strong> {escape(customer.get('city', ''))}</p>"
        "<h3>Order Items</h3>"
        '<table style="width:100%;border-collapse:collapse;">'
        "<thead><tr><th>Product</th><th>Quantity</th><th>Price</th></tr></thead>"
        f"<tbody>{''.join(rows)}</tbody></table>"
        f"<p><strong>Total Amount: {_money(order.get('total_amount'))}</strong></p>"
    )


def confirmation_email_html(order_number: str) -> str:
    return (
        "<h2>Thank you for your order!</h2>"
        "<p>Your order has been received and will be confirmed shortly.</p>"
        f"<p><strong>Order Number:</strong> {escape(order_number)}</p>"
        "<p>We will contact you soon with more information about your order.</p>"
    )


def order_chat_message(order: Dict[str, Any]) -> str:
    lines: List[str] = [f"New order received: {order['order_number']}"]
    customer = order.get("customer") or {}
    lines.append(f"Customer: {customer.get('full_name', '')}")
    if customer.get("phone_number"):
        lines.append(f"Phone: {customer['phone_number']}")
    if customer.get("city"):
        lines.append(f"City: {customer['city']}")
    lines.append("Items:")
    for item in order.get("items", []):
        line_total = (item.get("price") or 0) * (item.get("quantity") or 0)
        lines.append(f"- {item.get('product_name')} x{item.get('quantity')} = {_money(line_total)}")
    lines.append(f"Total: {_money(order.get('total_amount'))}")
    return "\n".join(lines)


class Mailer:
    def __init__(self, host: str, port: int, user: Optional[str], password: Optional[str], admin_email: Optional[str]):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.admin_email = admin_email

    @classmethod
    def from_config(cls) -> "Mailer":
        return cls(config.EMAIL_HOST, config.EMAIL_PORT, config.EMAIL_USER, config.EMAIL_PASSWORD, config.ADMIN_EMAIL)

    @property
    def enabled(self) -> bool:
        return bool(self.user and self.password)

    def send(self, to: str, subject: str, html: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.user
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")
        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(msg)

    def send_order_email(self, order: Dict[str, Any]) -> None:
        if not self.enabled or not self.admin_email:
            logger.info("notify.email_skipped", order_number=order["order_number"], reason="not configured")
            return
        self.send(self.admin_email, f"New Order Received: {order['order_number']}", order_email_html(order))
        logger.info("notify.email_sent", order_number=order["order_number"], to="admin")

    def send_confirmation_email(self, order_number: str, customer_email: str) -> None:
        if not self.enabled:
            logger.info("notify.confirmation_skipped", order_number=order_number, reason="not configured")
            return
        self.send(customer_email, f"Order Confirmation: {order_number}", confirmation_email_html(order_number))
        logger.info("notify.email_sent", order_number=order_number, to="customer")


class ChatNotifier(ABC):
    """Messaging collaborator. The service only asks whether it is ready and hands it orders."""

    def is_ready(self) -> bool:
        return False

    @abstractmethod
    def send(self, order: Dict[str, Any]) -> None:
        ...


class DisabledChatNotifier(ChatNotifier):
    def send(self, order: Dict[str, Any]) -> None:
        return None


class GatewayChatNotifier(ChatNotifier):
    """Posts the admin text to an HTTP gateway that owns the messaging session."""

    def __init__(self, gateway_url: str, admin_phone: Optional[str], timeout: float = 10.0):
        self.gateway_url = gateway_url
        self.admin_phone = admin_phone
        self.timeout = timeout

    def is_ready(self) -> bool:
        try:
            resp = httpx.get(f"{self.gateway_url.rstrip('/')}/status", timeout=self.timeout)
        except httpx.HTTPError:
            return False
        return resp.status_code == 200 and bool(resp.json().get("ready"))

    def send(self, order: Dict[str, Any]) -> None:
        if not self.admin_phone:
            logger.warning("notify.chat_skipped", order_number=order["order_number"], reason="ADMIN_PHONE not configured")
            return
        number = self.admin_phone.strip().lstrip("+")
        resp = httpx.post(
            f"{self.gateway_url.rstrip('/')}/messages",
            json={"to": number, "text": order_chat_message(order)},
            timeout=self.timeout,
        )
        resp.raise_for_status()


def build_chat_notifier() -> ChatNotifier:
    if config.ENABLE_WHATSAPP and config.WHATSAPP_GATEWAY_URL:
        return GatewayChatNotifier(config.WHATSAPP_GATEWAY_URL, config.ADMIN_PHONE)
    return DisabledChatNotifier()


mailer = Mailer.from_config()
chat_notifier = build_chat_notifier()


def get_mailer() -> Mailer:
    return mailer


def get_chat_notifier() -> ChatNotifier:
    return chat_notifier


def dispatch_order_notifications(order: Dict[str, Any], mail: Mailer, chat: ChatNotifier) -> None:
    """Run every side effect of a new order; each failure is logged and dropped."""
    number = order["order_number"]
    try:
        mail.send_order_email(order)
    except Exception:
        logger.exception("notify.email_failed", order_number=number, to="admin")

    customer_email = (order.get("customer") or {}).get("email")
    if customer_email:
        try:
            mail.send_confirmation_email(number, customer_email)
        except Exception:
            logger.exception("notify.email_failed", order_number=number, to="customer")

    try:
        if chat.is_ready():
            chat.send(order)
        else:
            logger.info("notify.chat_skipped", order_number=number, reason="not ready")
    except Exception:
        logger.exception("notify.chat_failed", order_number=number)
