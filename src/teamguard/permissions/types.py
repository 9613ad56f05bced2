"""Closed permission universe and the typed PermissionMap.

Learn: Roles store their permission matrix as JSON
({"vault": ["create", "read"], "financials": ["read"]}). That raw shape
is parsed exactly once, at the boundary, into a PermissionMap keyed by
the Module enum with frozensets of Action. Anything outside the closed
sets raises InvalidPermissionError — unknown strings are never dropped
or carried along silently.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

from teamguard.errors import InvalidPermissionError


class Module(str, Enum):
    VAULT = "vault"
    FINANCIALS = "financials"
    REPORTING = "reporting"


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


# Canonical ordering for serialized output
ACTION_ORDER: tuple[Action, ...] = tuple(Action)


def to_module(value: "Module | str") -> Module:
    try:
        return Module(value)
    except ValueError:
        raise InvalidPermissionError(f"Invalid module: {value!r}") from None


def to_action(value: "Action | str") -> Action:
    try:
        return Action(value)
    except ValueError:
        raise InvalidPermissionError(f"Invalid action: {value!r}") from None


@dataclass(frozen=True)
class PermissionMap:
    """Actions granted per module. All three modules are always present."""

    vault: frozenset[Action] = frozenset()
    financials: frozenset[Action] = frozenset()
    reporting: frozenset[Action] = frozenset()

    @classmethod
    def empty(cls) -> "PermissionMap":
        return cls()

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> "PermissionMap":
        """Parse a stored/raw matrix, rejecting anything outside the closed sets.

        Modules missing from `raw` get an empty action set. A module value
        must be a list (or tuple/set) of action strings.
        """
        if raw is None:
            return cls.empty()
        if not isinstance(raw, Mapping):
            raise InvalidPermissionError("Permissions must be an object")

        grants: dict[Module, frozenset[Action]] = {}
        for key, actions in raw.items():
            module = to_module(key)
            if isinstance(actions, (str, bytes)) or not isinstance(
                actions, (list, tuple, set, frozenset)
            ):
                raise InvalidPermissionError(
                    f"Permissions for {module.value} must be an array"
                )
            grants[module] = frozenset(to_action(a) for a in actions)
        return cls(
            vault=grants.get(Module.VAULT, frozenset()),
            financials=grants.get(Module.FINANCIALS, frozenset()),
            reporting=grants.get(Module.REPORTING, frozenset()),
        )

    @classmethod
    def merge(cls, maps: Iterable["PermissionMap"]) -> "PermissionMap":
        """Pure per-module set union. No precedence, no subtraction."""
        merged = cls.empty()
        for pm in maps:
            merged = merged | pm
        return merged

    def __or__(self, other: "PermissionMap") -> "PermissionMap":
        if not isinstance(other, PermissionMap):
            return NotImplemented
        return PermissionMap(
            vault=self.vault | other.vault,
            financials=self.financials | other.financials,
            reporting=self.reporting | other.reporting,
        )

    def __getitem__(self, module: "Module | str") -> frozenset[Action]:
        return getattr(self, to_module(module).value)

    def allows(self, module: "Module | str", action: "Action | str") -> bool:
        return to_action(action) in self[module]

    def is_empty(self) -> bool:
        return not (self.vault or self.financials or self.reporting)

    def to_dict(self) -> dict[str, list[str]]:
        """JSON shape: every module present, actions in canonical order."""
        return {
            module.value: [a.value for a in ACTION_ORDER if a in self[module]]
            for module in Module
        }
