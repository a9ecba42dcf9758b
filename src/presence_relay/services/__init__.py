# src/presence_relay/services/__init__.py
"""Relay services: registry, presence, message relay, history and routing."""

from .gateway import HttpPushGateway, LocalPushGateway, PushGateway, build_push_gateway
from .history import HistoryService
from .presence import PresenceBroadcaster
from .registry import ConnectionRegistry
from .relay import MessageRelay
from .router import Acknowledgment, EventRouter, InboundEvent

__all__ = [
    "Acknowledgment",
    "ConnectionRegistry",
    "EventRouter",
    "HistoryService",
    "HttpPushGateway",
    "InboundEvent",
    "LocalPushGateway",
    "MessageRelay",
    "PresenceBroadcaster",
    "PushGateway",
    "build_push_gateway",
]
