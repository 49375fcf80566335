"""SQLAlchemy database models."""

from handshake.models.base import Base
from handshake.models.chain import ChainStatus, MatchChain, MatchChainLink
from handshake.models.connection import Connection
from handshake.models.notification import Notification, NotificationStatus, NotificationType
from handshake.models.user import IgnoreEntry, SkillCategory, User, UserNeed, UserSkill

__all__ = [
    "Base",
    "ChainStatus",
    "Connection",
    "IgnoreEntry",
    "MatchChain",
    "MatchChainLink",
    "Notification",
    "NotificationStatus",
    "NotificationType",
    "SkillCategory",
    "User",
    "UserNeed",
    "UserSkill",
]
