from . import matches, notifications, push, relay

__all__ = ["matches", "notifications", "push", "relay"]
