import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import aiosmtplib

from core.breaker import email_breaker
from core.exceptions import EmailDeliveryError
from core.settings import settings

logger = logging.getLogger(__name__)


def styled_template(*, name: str, title: str, intro: str, details: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html lang="en">
    <head><meta charset="UTF-8"></head>
    <body style="margin:0;padding:0;background-color:#f4f6f8;font-family:Arial,sans-serif;color:#1e3a8a;">
      <div style="max-width:640px;margin:32px auto;background:#ffffff;border-radius:16px;overflow:hidden;">
        <div style="background:linear-gradient(135deg,#1e3a8a 0%,#3b82f6 100%);padding:32px 24px;text-align:center;">
          <h1 style="color:#ffffff;font-size:26px;margin:0;">{escape(title)}</h1>
        </div>
        <div style="padding:32px 24px;">
          <p style="font-size:18px;font-weight:600;">Dear {escape(name)},</p>
          <p style="font-size:16px;color:#374151;line-height:1.7;">{escape(intro)}</p>
          <div style="background:#f8fafc;border-left:4px solid #10b981;padding:24px;border-radius:8px;color:#374151;">
            {details}
          </div>
        </div>
        <div style="font-size:14px;color:#6b7280;padding:24px;text-align:center;border-top:1px solid #e5e7eb;">
          <p>Thank you for choosing {escape(settings.EMAIL_SENDER_NAME)}.</p>
        </div>
      </div>
    </body>
    </html>
    """


def payment_confirmation_email(
    *,
    name: str,
    property_name: str,
    amount: str,
    payment_type: str,
    receipt: str,
    payment_date: str,
) -> tuple[str, str]:
    details = (
        "<ul>"
        f"<li><strong>Property:</strong> {escape(property_name)}</li>"
        f"<li><strong>Amount:</strong> {settings.CURRENCY_LABEL} {escape(amount)}</li>"
        f"<li><strong>Payment Type:</strong> {escape(payment_type)}</li>"
        f"<li><strong>Transaction ID:</strong> {escape(receipt)}</li>"
        f"<li><strong>Date:</strong> {escape(payment_date)}</li>"
        "</ul>"
    )
    html = styled_template(
        name=name,
        title="Payment Confirmation",
        intro="We have received your payment. Here are the details:",
        details=details,
    )
    return "Payment Confirmation", html


class EmailService:
    async def send(self, to: str, subject: str, html: str) -> None:
        if not to:
            raise EmailDeliveryError("Recipient email address is required")
        if not settings.EMAIL_SERVER or not settings.EMAIL_USER:
            raise EmailDeliveryError("SMTP server is not configured")

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{settings.EMAIL_SENDER_NAME} <{settings.EMAIL_USER}>"
        message["To"] = to
        message.attach(MIMEText(html, "html"))

        async def handler():
            try:
                await aiosmtplib.send(
                    message,
                    hostname=settings.EMAIL_SERVER,
                    port=settings.EMAIL_PORT,
                    username=settings.EMAIL_USER,
                    password=settings.EMAIL_PASSWORD,
                    start_tls=settings.EMAIL_USE_TLS,
                )
            except aiosmtplib.SMTPException as e:
                raise EmailDeliveryError(f"Failed to send email: {e}") from e
            except OSError as e:
                raise EmailDeliveryError(f"SMTP connection failed: {e}") from e

        await email_breaker.call(handler)
        logger.info(f"Email '{subject}' sent to {to}")


email_service = EmailService()
