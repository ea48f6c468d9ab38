"""
Guard composition: run guards in declared order, stop at the first denial.

Convention: list authentication before role before ownership. Each guard
re-derives the authentication check on its own, so an explicit
`require_authenticated()` at the front is optional but harmless.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Tuple

from backend.identity_access.domain import Principal
from backend.scheduling.store import RelationshipStore

from .context import EMPTY_CONTEXT, RequestContext
from .decisions import ALLOW, Decision
from .guards import Guard

logger = logging.getLogger("autoecole.access")


def _principal_tail(principal: Optional[Principal]) -> str:
    # Never log full account ids: at most 6 chars and a third of the id.
    if not principal:
        return "-"
    keep = min(6, len(principal.id) // 3)
    return "\u2026" + (principal.id[-keep:] if keep else "")


async def evaluate_guards(
    guards: Iterable[Guard],
    principal: Optional[Principal],
    request: RequestContext | None,
    store: RelationshipStore,
) -> Decision:
    """Return the first denial from `guards`, or ALLOW when all pass."""
    ctx = request if request is not None else EMPTY_CONTEXT
    for guard in guards:
        decision = await guard(principal, ctx, store)
        if decision.denied:
            logger.info(
                "access denied guard=%s status=%s principal=%s role=%s",
                getattr(guard, "__name__", "guard"),
                decision.status_code,
                _principal_tail(principal),
                principal.role.value if principal else "-",
            )
            return decision
    return ALLOW


class GuardChain:
    """Immutable, reusable list of guards declared for one route."""

    def __init__(self, guards: Sequence[Guard] = ()) -> None:
        self._guards: Tuple[Guard, ...] = tuple(guards)

    @property
    def guards(self) -> Tuple[Guard, ...]:
        return self._guards

    def then(self, *guards: Guard) -> "GuardChain":
        return GuardChain(self._guards + tuple(guards))

    def __len__(self) -> int:
        return len(self._guards)

    async def evaluate(self, principal: Optional[Principal], request: RequestContext | None, store: RelationshipStore) -> Decision:
        return await evaluate_guards(self._guards, principal, request, store)


__all__ = ["GuardChain", "evaluate_guards"]
