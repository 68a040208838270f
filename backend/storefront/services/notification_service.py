"""
Notification Service - transactional order emails via the Resend API.

Sending is best-effort: every failure is logged and reported as False,
never raised, so a webhook acknowledgment never depends on email delivery.
"""
from dataclasses import dataclass
from decimal import Decimal
from html import escape
from typing import Optional

import httpx

from storefront.core.logging import get_logger
from storefront.models.order import Order

logger = get_logger(__name__)


@dataclass(frozen=True)
class TrackingInfo:
    number: Optional[str] = None
    url: Optional[str] = None

    @property
    def present(self) -> bool:
        return bool(self.number or self.url)


def format_money(amount: Optional[Decimal], currency: Optional[str]) -> str:
    code = (currency or "usd").upper()
    value = Decimal(amount or 0).quantize(Decimal("0.01"))
    return f"{value} {code}"


class NotificationService:
    """Order email dispatcher."""

    RESEND_API_URL = "https://api.resend.com/emails"

    def __init__(
        self,
        api_key: Optional[str],
        mail_from: Optional[str],
        *,
        brand_name: str = "Poster Storefront",
        account_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.mail_from = mail_from
        self.brand_name = brand_name
        self.account_url = account_url
        self.transport = transport

    async def send_email(
        self,
        to: Optional[str],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Send email via Resend API.

        Returns:
            True if sent successfully
        """
        if not self.api_key or not self.mail_from:
            logger.warning("Email not configured, skipping", subject=subject)
            return False
        if not to:
            logger.info("No recipient, skipping email", subject=subject)
            return False

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    self.RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": self.mail_from,
                        "to": [to],
                        "subject": subject,
                        "html": html_content,
                        "text": text_content or subject,
                    },
                    timeout=10.0,
                )
        except httpx.HTTPError as e:
            logger.error("Email send error", error=str(e), subject=subject)
            return False

        if 200 <= response.status_code < 300:
            logger.info("Email sent", to=to, subject=subject)
            return True

        logger.error(
            "Email send failed",
            status=response.status_code,
            response=response.text,
        )
        return False

    async def notify_shipped(self, order: Order, tracking: TrackingInfo) -> bool:
        """Tell the customer their poster is on its way."""
        html, text = self.format_shipped_email(order, tracking)
        sent = await self.send_email(
            order.customer_email,
            f"Your {self.brand_name} order has shipped",
            html,
            text,
        )
        logger.info("Shipped notification attempted", order_id=order.id, sent=sent)
        return sent

    async def notify_order_received(self, order: Order) -> bool:
        """Confirm that a paid order reached the print provider."""
        html, text = self.format_received_email(order)
        title = order.catalog_item_title or self.brand_name
        return await self.send_email(
            order.customer_email,
            f"Order received: {title}",
            html,
            text,
        )

    def format_shipped_email(self, order: Order, tracking: TrackingInfo) -> tuple[str, str]:
        """
        Format a shipped notification.

        Returns:
            Tuple of (html_content, text_content)
        """
        title = order.catalog_item_title or "Your poster"
        name = order.customer_name

        if tracking.url:
            tracking_html = (
                f'<p style="margin:10px 0 0 0;"><a href="{escape(tracking.url)}" '
                f'target="_blank" rel="noopener">Track your package</a></p>'
            )
            tracking_text = f"Track: {tracking.url}"
        elif tracking.number:
            tracking_html = (
                f'<p style="margin:10px 0 0 0;">Tracking number: '
                f"<strong>{escape(tracking.number)}</strong></p>"
            )
            tracking_text = f"Tracking: {tracking.number}"
        else:
            tracking_html = ""
            tracking_text = ""

        greeting = f"Hi {escape(name)}," if name else "Hi,"
        print_ref = (
            f'<p style="color:#666;font-size:13px;margin:12px 0 0 0;">'
            f"Print ref: {escape(order.fulfillment_order_id)}</p>"
            if order.fulfillment_order_id
            else ""
        )

        html = f"""
<div style="font-family:ui-sans-serif,system-ui,-apple-system,Segoe UI,Roboto,Arial;line-height:1.45">
    <h2 style="margin:0 0 12px 0;">Shipped</h2>
    <p style="margin:0 0 10px 0;">{greeting}</p>
    <p style="margin:0 0 10px 0;">Your order for <strong>{escape(title)}</strong> is on its way.</p>
    <p style="margin:0 0 10px 0;color:#666;">Total: {escape(format_money(order.amount_total, order.currency))}</p>
    {tracking_html}
    {print_ref}
    <p style="color:#666;font-size:13px;margin:12px 0 0 0;">{escape(self.brand_name)}</p>
</div>
"""
        text = f"Shipped! {title}. {tracking_text}".strip()
        return html, text

    def format_received_email(self, order: Order) -> tuple[str, str]:
        """Returns (html_content, text_content) for an order confirmation."""
        title = order.catalog_item_title or "Poster"
        paper = "Fine Art" if order.paper == "fineart" else "Standard"
        specs = f"{paper} · {order.size.upper()} · {order.layout_mode}"
        money = format_money(order.amount_total, order.currency)
        print_ref = order.fulfillment_order_id or "(pending)"

        account_link = ""
        account_line = ""
        if self.account_url:
            account_link = (
                f'<p style="margin:12px 0 0 0;">Track status in your account: '
                f'<a href="{escape(self.account_url)}">{escape(self.account_url)}</a></p>'
            )
            account_line = f"\n\nYou can view your order status here:\n{self.account_url}"

        html = f"""
<div style="font-family:ui-sans-serif,system-ui,-apple-system,Segoe UI,Roboto,Arial;line-height:1.5;">
    <h2 style="margin:0 0 8px 0;">Thanks, we received your order</h2>
    <p style="margin:0 0 12px 0;">We'll send another email as soon as it ships.</p>
    <div style="padding:12px;border:1px solid #eee;border-radius:10px;">
        <div><strong>{escape(title)}</strong></div>
        <div style="color:#666;">{escape(specs)}</div>
        <div style="margin-top:10px;"><strong>Total:</strong> {escape(money)}</div>
        <div style="margin-top:4px;color:#666;">Print ref: {escape(print_ref)}</div>
    </div>
    {account_link}
</div>
"""
        text = (
            "Thanks for your order!\n\n"
            f"Item: {title}\n"
            f"Specs: {specs}\n"
            f"Total: {money}\n"
            f"Print ref: {print_ref}"
            f"{account_line}"
        )
        return html, text
