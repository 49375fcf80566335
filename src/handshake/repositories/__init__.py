"""Data access layer.

Repositories wrap an ``AsyncSession``; they never commit, the caller's
unit of work does.
"""

from handshake.repositories.chain_repository import ChainRepository
from handshake.repositories.graph_repository import GraphRepository
from handshake.repositories.notification_repository import NotificationRepository

__all__ = [
    "ChainRepository",
    "GraphRepository",
    "NotificationRepository",
]
