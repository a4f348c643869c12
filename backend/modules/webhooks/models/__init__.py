from .webhook_models import WebhookLog, WebhookStatistics, WebhookRegistration

__all__ = ["WebhookLog", "WebhookStatistics", "WebhookRegistration"]
