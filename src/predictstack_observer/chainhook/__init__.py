"""Chainhook integration - the push path."""

from predictstack_observer.chainhook.registrar import ChainhookRegistrar
from predictstack_observer.chainhook.router import EventRouter, RouteResult
from predictstack_observer.chainhook.server import ChainhookServer
from predictstack_observer.chainhook.subscriptions import build_subscriptions

__all__ = [
    "ChainhookRegistrar", "EventRouter", "RouteResult", "ChainhookServer",
    "build_subscriptions",
]
