"""Custom exceptions for the Notifier."""


class NotificationError(Exception):
    """Notification could not be delivered."""
