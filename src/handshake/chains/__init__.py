"""Clearing chains - discovery, repair and participant actions."""

from handshake.chains.finder import ChainFinder, select_new_cycles
from handshake.chains.lifecycle import ChainLifecycle
from handshake.chains.replacement import ReplacementSearch, adjacent_edges

__all__ = [
    "ChainFinder",
    "ChainLifecycle",
    "ReplacementSearch",
    "adjacent_edges",
    "select_new_cycles",
]
