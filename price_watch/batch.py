"""Scheduled batch run: check every qualifying user and email their drops."""

import logging
from datetime import datetime

from price_watch.config import Settings
from price_watch.eligibility import window_cutoff
from price_watch.engine import PriceCheckEngine, as_utc
from price_watch.errors import ConfigurationError, DeliveryError
from price_watch.models import MailEnvelope, User
from price_watch.notifiers.email import SmtpMailer, compose
from price_watch.storage import PurchaseStore

logger = logging.getLogger(__name__)


def _check_user(
    user: User,
    engine: PriceCheckEngine,
    mailer: SmtpMailer,
    settings: Settings,
    now: datetime,
) -> None:
    logger.info("Checking prices for user: %s", user.email)
    run = engine.run_for_user(user.id, now)
    drops = engine.drops_for(run, user.id)

    if not drops:
        logger.info("No price drops for user %s", user.email)
        return

    logger.info("User %s has %d item(s) with price drops", user.email, len(drops))
    note = compose(drops, run.checked_at)
    recipient = settings.alert_recipient or user.email
    sender = settings.mail_from
    if not sender:
        raise ConfigurationError("SMTP_FROM or SMTP_USER must be set to send alerts")

    mailer.send_mail(
        MailEnvelope(sender=sender, to=recipient, subject=note.subject, text=note.text, html=note.html)
    )
    logger.info("Sent email to %s for %d drop(s)", recipient, len(drops))


def run_batch(
    store: PurchaseStore,
    engine: PriceCheckEngine,
    mailer: SmtpMailer,
    settings: Settings,
    now: datetime | None = None,
) -> None:
    """
    One scheduled pass over all users with purchases in their watch window.

    A failure for one user (missing configuration, mail delivery, anything
    unexpected) is logged and the run moves on to the next user. Price
    checks already persisted are kept when the email fails.
    """
    now = as_utc(now)
    logger.info("Running scheduled price check at %s", now.isoformat())

    users = store.users_with_watched_since(window_cutoff(now, settings.window_days))
    if not users:
        logger.info("No users with active watched purchases. Nothing to do.")
        return

    for user in users:
        if not user.email:
            logger.warning("User %s has no email address, skipping", user.id)
            continue
        try:
            _check_user(user, engine, mailer, settings, now)
        except ConfigurationError as e:
            logger.error("Configuration error while checking user %s: %s", user.email, e)
        except DeliveryError as e:
            logger.error("Could not email user %s: %s", user.email, e)
        except Exception:
            logger.exception("Price check failed for user %s", user.email)

    logger.info("Scheduled price check finished for %d user(s)", len(users))
