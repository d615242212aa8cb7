"""Downstream notification adapters."""

from exambank.providers.notification.webhook_notification_provider import WebhookNotificationProvider

__all__ = ["WebhookNotificationProvider"]
