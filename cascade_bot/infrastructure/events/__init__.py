from .webhook import EVENT_NAME, SelectionWebhook

__all__ = ["EVENT_NAME", "SelectionWebhook"]
