"""
Invoice and account email rendering and SMTP delivery
"""

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Tuple

from fastapi import Depends

from app.config import Settings, get_settings
from app.schemas.invoice import InvoiceView

logger = logging.getLogger(__name__)

HTML_TEMPLATE = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #222;">
    <h2>Payment received</h2>
    <p>Dear {name},</p>
    <p>Thank you for enrolling. Your payment has been confirmed.</p>
    <table cellpadding="6" style="border-collapse: collapse;">
      <tr><td>Invoice number</td><td>{invoice_number}</td></tr>
      <tr><td>Student ID</td><td>{student_id}</td></tr>
      <tr><td>Payment ID</td><td>{payment_id}</td></tr>
      <tr><td>{program_name}</td><td>{currency} {program_price}</td></tr>
{addon_row}      <tr><td>GST included ({gst_rate}%)</td><td>{currency} {gst_amount}</td></tr>
      <tr><td><strong>Total</strong></td><td><strong>{currency} {total}</strong></td></tr>
    </table>
    <p><a href="{invoice_url}">View your invoice</a></p>
  </body>
</html>
"""

ADDON_ROW = "      <tr><td>Add-ons: {addon_names}</td><td>{currency} {addon_price}</td></tr>\n"


class EmailDispatcher:
    """Sends invoice and account emails through the configured SMTP relay"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def render(self, invoice: InvoiceView) -> Tuple[str, str, str]:
        """Return (subject, html body, plain-text body)"""
        details, student = invoice.invoice, invoice.student
        addon_lines = details.addon_lines
        addon_names = ", ".join(line.description for line in addon_lines)
        esc = lambda value: html.escape(str(value if value is not None else ""))

        addon_row = ""
        if addon_lines:
            addon_row = ADDON_ROW.format(
                addon_names=esc(addon_names), currency=esc(details.currency), addon_price=details.addon_price
            )

        body_html = HTML_TEMPLATE.format(
            name=esc(student.full_name),
            invoice_number=esc(details.invoice_number),
            student_id=esc(student.student_id),
            payment_id=esc(details.payment_id),
            program_name=esc(details.program_line.description),
            currency=esc(details.currency),
            program_price=details.program_price,
            addon_row=addon_row,
            gst_rate=f"{details.gst_rate:g}",
            gst_amount=details.gst_amount,
            total=details.total,
            invoice_url=esc(details.invoice_url),
        )

        text_lines = [
            f"Dear {student.full_name},",
            "",
            "Thank you for enrolling. Your payment has been confirmed.",
            f"Invoice number: {details.invoice_number}",
            f"Student ID: {student.student_id}",
            f"{details.program_line.description}: {details.currency} {details.program_price}",
        ]
        if addon_lines:
            text_lines.append(f"Add-ons: {addon_names}: {details.currency} {details.addon_price}")
        text_lines += [
            f"GST included ({details.gst_rate:g}%): {details.currency} {details.gst_amount}",
            f"Total: {details.currency} {details.total}",
            f"Invoice: {details.invoice_url}",
        ]

        subject = f"Your invoice {details.invoice_number}"
        return subject, body_html, "\n".join(text_lines)

    def send_invoice(self, recipient: str, invoice: InvoiceView) -> bool:
        """Send the invoice; failures are logged and reported as False"""
        number = invoice.invoice.invoice_number
        try:
            subject, body_html, body_text = self.render(invoice)
        except Exception as e:
            logger.error(f"Failed to render invoice {number}: {e}", exc_info=True)
            return False
        return self._send(recipient, subject, body_text, body_html, label=f"Invoice {number}")

    def send_password_reset(self, recipient: str, name: str, link: str) -> bool:
        text = "\n".join([
            f"Hello {name},",
            "",
            "We received a request to reset your password. Use the link below to choose a new one.",
            link,
            "",
            f"The link expires in {self.settings.password_reset_expire_minutes} minutes.",
            "If you did not ask for this, you can ignore this email.",
        ])
        return self._send(recipient, "Reset your password", text, label="Password reset")

    def send_email_verification(self, recipient: str, name: str, link: str) -> bool:
        text = "\n".join([
            f"Hello {name},",
            "",
            "Please confirm your email address by opening the link below.",
            link,
        ])
        return self._send(recipient, "Confirm your email address", text, label="Email verification")

    def _send(self, recipient: str, subject: str, body_text: str, body_html: Optional[str] = None,
              label: str = "Email") -> bool:
        try:
            message = EmailMessage()
            message["Subject"] = subject
            message["From"] = self.settings.smtp_from
            message["To"] = recipient
            message.set_content(body_text)
            if body_html is not None:
                message.add_alternative(body_html, subtype="html")

            self._deliver(message)
            logger.info(f"{label} sent to {recipient}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send {label.lower()} to {recipient}: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending {label.lower()} to {recipient}: {e}", exc_info=True)
            return False

    def _deliver(self, message: EmailMessage) -> None:
        host, port = self.settings.smtp_host, self.settings.smtp_port
        timeout = self.settings.smtp_timeout_seconds

        if port == 465:
            smtp = smtplib.SMTP_SSL(host, port, timeout=timeout)
        else:
            smtp = smtplib.SMTP(host, port, timeout=timeout)

        with smtp:
            if port != 465 and self.settings.smtp_use_tls:
                smtp.starttls()
            if self.settings.smtp_username:
                smtp.login(self.settings.smtp_username, self.settings.smtp_password)
            smtp.send_message(message)


def get_email_dispatcher(settings: Settings = Depends(get_settings)) -> EmailDispatcher:
    return EmailDispatcher(settings)
