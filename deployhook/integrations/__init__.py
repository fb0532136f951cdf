from .webhooks import DelayWebhookCaller, HttpWebhookCaller, WebhookCaller, build_callers

__all__ = ["DelayWebhookCaller", "HttpWebhookCaller", "WebhookCaller", "build_callers"]
