"""Domain event handlers."""

from predictstack_observer.handlers.handler_set import HandlerSet

__all__ = ["HandlerSet"]
