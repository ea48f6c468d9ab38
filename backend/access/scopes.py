"""
Student visibility scopes for list endpoints.

Record-level guards protect single resources; list endpoints need the set of
student profiles a caller may see so they can filter before returning rows.
The rules mirror the guards: admins see everyone, students see themselves,
instructors see every student they share a Lesson with.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, List, Optional

from backend.identity_access.domain import Principal, Role
from backend.scheduling.store import RelationshipStore


@dataclass(frozen=True)
class StudentScope:
    unrestricted: bool = False
    student_ids: FrozenSet[str] = field(default_factory=frozenset)

    def includes(self, student_id: Optional[str]) -> bool:
        if self.unrestricted:
            return True
        return bool(student_id) and student_id in self.student_ids

    def filter(self, records: Iterable[Any]) -> List[Any]:
        """Keep records whose `student_id` (attribute or key) is in scope."""
        out = []
        for rec in records:
            sid = rec.get("student_id") if isinstance(rec, dict) else getattr(rec, "student_id", None)
            if self.includes(sid):
                out.append(rec)
        return out


NOTHING = StudentScope()
EVERYTHING = StudentScope(unrestricted=True)


async def student_scope(principal: Optional[Principal], store: RelationshipStore) -> StudentScope:
    if principal is None:
        return NOTHING
    if principal.is_admin:
        return EVERYTHING
    if principal.role is Role.STUDENT:
        profile = await store.find_student_profile_by_user_id(principal.id)
        return StudentScope(student_ids=frozenset({profile.id})) if profile else NOTHING
    if principal.role is Role.INSTRUCTOR:
        instructor = await store.find_instructor_profile_by_user_id(principal.id)
        if instructor is None:
            return NOTHING
        ids = await store.list_student_ids_for_instructor(instructor.id)
        return StudentScope(student_ids=frozenset(ids))
    return NOTHING


__all__ = ["EVERYTHING", "NOTHING", "StudentScope", "student_scope"]
