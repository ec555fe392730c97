"""Stacks explorer integration - the pull path."""

from predictstack_observer.stacks.api import StacksApiClient
from predictstack_observer.stacks.poller import ContractPoller
from predictstack_observer.stacks.retry import RetryPolicy

__all__ = ["StacksApiClient", "ContractPoller", "RetryPolicy"]
