"""Notification backends."""

from price_watch.notifiers.email import SmtpMailer, compose

__all__ = ["SmtpMailer", "compose"]
