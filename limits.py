"""Plafond de liens par offre (gratuit / premium)."""

from typing import Optional

FREE_LINK_LIMIT = 5

# Valeur envoyée au client pour "illimité"
UNLIMITED_WIRE = -1


class LinkCap:
    """Plafond borné (`limit` = entier) ou illimité (`limit` = None)."""

    __slots__ = ("limit",)

    def __init__(self, limit: Optional[int]):
        self.limit = limit

    @classmethod
    def bounded(cls, limit: int) -> "LinkCap":
        return cls(limit)

    @classmethod
    def unbounded(cls) -> "LinkCap":
        return cls(None)

    @property
    def is_unbounded(self) -> bool:
        return self.limit is None

    def allows(self, current_count: int) -> bool:
        return self.is_unbounded or current_count < self.limit

    def to_wire(self) -> int:
        return UNLIMITED_WIRE if self.is_unbounded else self.limit

    def __eq__(self, other):
        return isinstance(other, LinkCap) and other.limit == self.limit

    def __hash__(self):
        return hash(self.limit)

    def __repr__(self):
        return "LinkCap(unbounded)" if self.is_unbounded else f"LinkCap({self.limit})"


def max_links(is_premium: bool) -> LinkCap:
    if is_premium:
        return LinkCap.unbounded()
    return LinkCap.bounded(FREE_LINK_LIMIT)


def can_create(current_count: int, is_premium: bool) -> bool:
    return max_links(is_premium).allows(current_count)
