from lumio.server.app import WebhookHandler, create_app

__all__ = ["create_app", "WebhookHandler"]
