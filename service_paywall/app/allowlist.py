"""
Static allow-list of identities that bypass ledger evaluation.
"""

from typing import FrozenSet, Iterable, Optional


class AllowList:
    """Case-insensitive exact-match set of configured identities."""

    def __init__(self, entries: Optional[Iterable[str]] = None):
        self._entries: FrozenSet[str] = frozenset(
            entry.strip().casefold()
            for entry in (entries or [])
            if entry and entry.strip()
        )

    def contains(self, identity: Optional[str]) -> bool:
        if not identity:
            return False
        return identity.strip().casefold() in self._entries

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and self.contains(identity)

    def __len__(self) -> int:
        return len(self._entries)
