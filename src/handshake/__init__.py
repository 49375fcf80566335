"""Handshake - social graph traversal and matching engine.

Resolves notification recipients over the handshake graph, discovers
skill-exchange clearing chains, and clusters the network into
connected components.
"""

__version__ = "0.1.0"
