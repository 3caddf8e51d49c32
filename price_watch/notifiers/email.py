"""Price-drop email: composition and SMTP delivery."""

import html
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from price_watch.config import Settings
from price_watch.errors import ConfigurationError, DeliveryError
from price_watch.models import DropInfo, MailEnvelope, Notification

logger = logging.getLogger(__name__)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def _days_text(drop: DropInfo) -> str:
    if drop.days_left > 0:
        return f"{_plural(drop.days_left, 'day')} left to claim"
    return "window likely expired"


def _label(drop: DropInfo) -> str:
    return drop.title or f"SKU {drop.sku}"


def compose(drops: list[DropInfo], checked_at: datetime) -> Notification:
    """
    Render subject, plain text and HTML for the drops found in one run.

    Only items with a positive drop are included. Raises ValueError when
    none are left; callers are expected not to send anything in that case.
    """
    drops = [d for d in drops if d.price_drop > 0]
    if not drops:
        raise ValueError("no price drops to notify about")

    total = sum(d.price_drop for d in drops)
    when = checked_at.strftime("%Y-%m-%d %H:%M %Z").strip()

    subject = (
        f"Best Buy Price Watch: {_plural(len(drops), 'item')} dropped "
        f"(total ↓ ${total:,.2f})"
    )

    lines = [
        f"{_label(d)}: paid ${d.paid_price:,.2f}, current ${d.current_price:,.2f} "
        f"(↓ ${d.price_drop:,.2f}), {_days_text(d)}"
        for d in drops
    ]
    text = (
        f"Price check at {when} found {_plural(len(drops), 'item')} with drops:\n\n"
        + "\n".join(lines)
        + f"\n\nTotal potential savings: ${total:,.2f}\n"
    )

    items = "\n".join(
        f"  <li><strong>{html.escape(_label(d))}</strong>: "
        f"paid ${d.paid_price:,.2f}, current ${d.current_price:,.2f} "
        f"(<strong>↓ ${d.price_drop:,.2f}</strong>) – <em>{_days_text(d)}</em></li>"
        for d in drops
    )
    body = (
        f"<p>Price check at {html.escape(when)} found {_plural(len(drops), 'item')} with drops:</p>\n"
        f"<ul>\n{items}\n</ul>\n"
        f"<p><strong>Total potential savings:</strong> ${total:,.2f}</p>"
    )

    return Notification(subject=subject, text=text, html=body)


class SmtpMailer:
    """
    Deliver mail over SMTP with STARTTLS (Gmail by default).

    Uses SMTP_USER and SMTP_PASS (Gmail App Password).
    """

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_pass

    def send_mail(self, envelope: MailEnvelope) -> None:
        if not self.user or not self.password:
            raise ConfigurationError("SMTP_USER or SMTP_PASS not set")

        msg = MIMEMultipart("alternative")
        msg["From"] = envelope.sender
        msg["To"] = envelope.to
        msg["Subject"] = envelope.subject
        msg.attach(MIMEText(envelope.text, "plain", "utf-8"))
        msg.attach(MIMEText(envelope.html, "html", "utf-8"))

        try:
            logger.debug("Email: sending to %s", envelope.to)
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.sendmail(envelope.sender, [envelope.to], msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError(f"Email authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"Email SMTP error: {e}") from e
        logger.info("Email: sent to %s", envelope.to)
