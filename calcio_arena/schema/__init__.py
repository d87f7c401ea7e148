from calcio_arena.schema.matches import Match, Participant
from calcio_arena.schema.notifications import Notification
from calcio_arena.schema.push_subscriptions import PushSubscriptionRow

__all__ = ["Match", "Notification", "Participant", "PushSubscriptionRow"]
