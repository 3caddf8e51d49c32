import smtplib
from datetime import datetime, timezone

import pytest

from price_watch.config import Settings
from price_watch.errors import ConfigurationError, DeliveryError
from price_watch.models import DropInfo, MailEnvelope
from price_watch.notifiers import email
from price_watch.notifiers.email import SmtpMailer, compose

CHECKED_AT = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def drop(sku, paid, current, days_left=5, title=None):
    return DropInfo(
        id=f"id-{sku}", sku=sku, title=title, paid_price=paid,
        current_price=current, price_drop=round(paid - current, 2) if current < paid else 0.0,
        days_left=days_left,
    )


def test_subject_counts_items_and_total_savings():
    note = compose([drop("1", 100, 80, title="Blender"), drop("2", 50, 45.5)], CHECKED_AT)
    assert note.subject == "Best Buy Price Watch: 2 items dropped (total ↓ $24.50)"


def test_single_item_subject_is_singular():
    note = compose([drop("1", 1299.99, 1199.99)], CHECKED_AT)
    assert note.subject == "Best Buy Price Watch: 1 item dropped (total ↓ $100.00)"


def test_items_without_drop_are_left_out():
    note = compose([drop("1", 100, 80, title="Blender"), drop("2", 50, 60, title="Kettle")], CHECKED_AT)
    assert "Blender" in note.text
    assert "Kettle" not in note.text
    assert "1 item dropped" in note.subject


def test_nothing_to_send_raises():
    with pytest.raises(ValueError):
        compose([drop("2", 50, 60)], CHECKED_AT)


def test_text_lines_show_prices_and_days_left():
    note = compose(
        [drop("1", 100, 80, days_left=1, title="Blender"), drop("2", 20, 10, days_left=0)],
        CHECKED_AT,
    )
    assert "Blender: paid $100.00, current $80.00 (↓ $20.00), 1 day left to claim" in note.text
    assert "SKU 2: paid $20.00, current $10.00 (↓ $10.00), window likely expired" in note.text
    assert "Total potential savings: $30.00" in note.text


def test_html_escapes_titles():
    note = compose([drop("1", 100, 80, title="<b>TV</b> & stand")], CHECKED_AT)
    assert "&lt;b&gt;TV&lt;/b&gt; &amp; stand" in note.html
    assert "<b>TV</b>" not in note.html
    assert "<li>" in note.html


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.sent = []
        self.logged_in = None
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")
        self.logged_in = user

    def sendmail(self, sender, to, message):
        self.sent.append((sender, to, message))


def envelope():
    return MailEnvelope(sender="alerts@example.com", to="a@example.com", subject="s", text="t", html="<p>h</p>")


def test_smtp_mailer_sends_multipart(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(email.smtplib, "SMTP", FakeSMTP)
    mailer = SmtpMailer(Settings(smtp_user="alerts@example.com", smtp_pass="pw", smtp_host="smtp.test", smtp_port=2525))

    mailer.send_mail(envelope())

    [server] = FakeSMTP.instances
    assert (server.host, server.port) == ("smtp.test", 2525)
    assert server.logged_in == "alerts@example.com"
    sender, to, message = server.sent[0]
    assert to == ["a@example.com"]
    assert "text/plain" in message and "text/html" in message


def test_smtp_auth_failure_is_delivery_error(monkeypatch):
    monkeypatch.setattr(email.smtplib, "SMTP", FakeSMTP)
    mailer = SmtpMailer(Settings(smtp_user="alerts@example.com", smtp_pass="wrong"))
    with pytest.raises(DeliveryError):
        mailer.send_mail(envelope())


def test_connection_failure_is_delivery_error(monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("no route")

    monkeypatch.setattr(email.smtplib, "SMTP", refuse)
    mailer = SmtpMailer(Settings(smtp_user="alerts@example.com", smtp_pass="pw"))
    with pytest.raises(DeliveryError):
        mailer.send_mail(envelope())


def test_missing_smtp_credentials_is_configuration_error():
    with pytest.raises(ConfigurationError):
        SmtpMailer(Settings()).send_mail(envelope())
