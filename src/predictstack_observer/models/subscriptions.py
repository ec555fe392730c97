"""Chainhook subscription (predicate) models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from predictstack_observer.models.events import EventKind


class Scope(str, Enum):
    PRINT_EVENT = "print_event"
    FT_EVENT = "ft_event"
    STX_EVENT = "stx_event"
    CONTRACT_DEPLOYMENT = "contract_deployment"


@dataclass(frozen=True)
class SubscriptionCondition:
    """The ``if_this`` half of a predicate."""

    scope: Scope
    contract_identifier: str | None = None  # print_event
    contains: str | None = None  # print_event
    asset_identifier: str | None = None  # ft_event
    actions: tuple[str, ...] = ()  # ft_event / stx_event
    deployer: str | None = None  # contract_deployment

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"scope": self.scope.value}
        if self.contract_identifier is not None:
            out["contract_identifier"] = self.contract_identifier
        if self.contains is not None:
            out["contains"] = self.contains
        if self.asset_identifier is not None:
            out["asset_identifier"] = self.asset_identifier
        if self.actions:
            out["actions"] = list(self.actions)
        if self.deployer is not None:
            out["deployer"] = self.deployer
        return out


@dataclass(frozen=True)
class Subscription:
    """A registered condition bound to a stable identifier.

    The uuid must never change once deployed: the chainhook node deduplicates
    by it, and a new uuid orphans the old predicate on the remote side.
    """

    uuid: str
    name: str
    condition: SubscriptionCondition
    handler: EventKind
    version: int = 1
    decode_values: bool = False
    start_block: int | None = None
    expire_after_occurrence: int | None = None

    @property
    def label(self) -> str:
        """Short description used in log lines."""
        return self.condition.contains or self.condition.scope.value

    def to_registration(
        self, network: str, callback_url: str, auth_token: str
    ) -> dict[str, Any]:
        """Predicate body for the chainhook node, scoped to one network."""
        spec: dict[str, Any] = {
            "if_this": self.condition.to_dict(),
            "then_that": {
                "http_post": {
                    "url": callback_url,
                    "authorization_header": f"Bearer {auth_token}",
                },
            },
        }
        if self.decode_values:
            spec["decode_clarity_values"] = True
        if self.start_block is not None:
            spec["start_block"] = self.start_block
        if self.expire_after_occurrence is not None:
            spec["expire_after_occurrence"] = self.expire_after_occurrence
        return {
            "uuid": self.uuid,
            "name": self.name,
            "version": self.version,
            "chain": "stacks",
            "networks": {network: spec},
        }
