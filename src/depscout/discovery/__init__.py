"""Autonomous dependency rule discovery.

Import ``DiscoveryService`` from ``depscout.discovery.service``.
"""

from depscout.discovery.cache import DiscoveryCache
from depscout.discovery.conversion import convert_rules, prioritize_rules
from depscout.discovery.events import EVENT_TYPES, EventBus
from depscout.discovery.session import DiscoverySession, SessionStatus

__all__ = [
    "EVENT_TYPES",
    "DiscoveryCache",
    "DiscoverySession",
    "EventBus",
    "SessionStatus",
    "convert_rules",
    "prioritize_rules",
]
