"""
Step matching — how a step instance is tied back to its template step.

There is no foreign key between the two; the link is soft.  The default
rule is (order, normalized name).  Normalization is trim + casefold.
"""

from __future__ import annotations

from typing import Iterable, Protocol, TypeVar


class _Ordered(Protocol):
    id: int
    name: str
    step_order: int


S = TypeVar("S", bound=_Ordered)


def normalize_name(name: str | None) -> str:
    """Casefolded, trimmed step name; None becomes the empty string."""
    return (name or "").strip().casefold()


class StepMatcher(Protocol):
    """Decides whether an instance step corresponds to a template step."""

    def matches(self, name: str, order: int, candidate: _Ordered) -> bool: ...


class NameOrderMatcher:
    """Same position and same normalized name."""

    def matches(self, name: str, order: int, candidate: _Ordered) -> bool:
        return candidate.step_order == order and normalize_name(candidate.name) == normalize_name(name)


class NameOnlyMatcher:
    """Same normalized name, position ignored (tolerates prior drift in orders)."""

    def matches(self, name: str, order: int, candidate: _Ordered) -> bool:
        return normalize_name(candidate.name) == normalize_name(name)


DEFAULT_MATCHER: StepMatcher = NameOrderMatcher()


def find_match(
    name: str,
    order: int,
    candidates: Iterable[S],
    matcher: StepMatcher = DEFAULT_MATCHER,
    *,
    exclude: set[int] | None = None,
) -> S | None:
    """First candidate accepted by `matcher`, skipping candidate ids in `exclude`."""
    for candidate in candidates:
        if exclude and candidate.id in exclude:
            continue
        if matcher.matches(name, order, candidate):
            return candidate
    return None
