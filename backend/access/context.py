"""
Typed request context for access guards.

A guard declares where its identifier lives (`ParamSource`) and the context
resolves it once into a plain string before the predicate runs. Predicates
never look at raw request objects.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class ParamSource(str, Enum):
    PARAMS = "params"
    BODY = "body"


def _as_identifier(value: Any) -> Optional[str]:
    # bool is an int subclass; treat it as non-identifier.
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, int):
        return str(value)
    return None


@dataclass(frozen=True)
class RequestContext:
    params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params or {})))
        body = self.body if isinstance(self.body, Mapping) else {}
        object.__setattr__(self, "body", MappingProxyType(dict(body)))

    def resolve(self, name: str, source: ParamSource = ParamSource.PARAMS) -> Optional[str]:
        """Return the identifier `name` from `source`, or None when absent."""
        mapping = self.body if source is ParamSource.BODY else self.params
        return _as_identifier(mapping.get(name))


EMPTY_CONTEXT = RequestContext()

__all__ = ["EMPTY_CONTEXT", "ParamSource", "RequestContext"]
