"""
Key Registries

Run-wide deduplication state shared by every worker.

ReferenceRegistry maps natural keys of one reference kind to synthetic ids.
ClaimRegistry records which primary keys (registration ids, national codes)
a document has already claimed. Each registry has its own lock, held only
for the lookup-or-assign step.
"""

from __future__ import annotations

import hashlib
import threading
from typing import Dict, Iterable, Optional, Tuple

from ..common.errors import NormalizationInvariantError


def synthetic_id(kind: str, natural_key: str) -> int:
    """
    Derive the synthetic id for a natural key.

    The id depends only on (kind, natural_key), so every run and every
    scheduling order produces the same ids. 63 bits keeps it inside a
    PostgreSQL bigint.

    Args:
        kind: Reference entity kind (e.g. 'laboratory')
        natural_key: Normalized natural key

    Returns:
        Positive integer id
    """
    digest = hashlib.blake2b(f"{kind}\x1f{natural_key}".encode('utf-8'), digest_size=8).digest()
    return int.from_bytes(digest, 'big') >> 1


def normalize_key(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty values mean 'no reference'."""
    if value is None:
        return None
    collapsed = ' '.join(value.split())
    return collapsed or None


class ReferenceRegistry:
    """
    Bijective natural key <-> synthetic id mapping for one reference kind.

    Usage:
        registry = ReferenceRegistry('laboratory')
        lab_id, is_new = registry.lookup_or_assign('Acme Labs')
    """

    def __init__(self, kind: str):
        self.kind = kind
        self._lock = threading.Lock()
        self._ids: Dict[str, int] = {}
        self._keys: Dict[int, str] = {}

    def lookup_or_assign(self, natural_key: str) -> Tuple[int, bool]:
        """
        Return the id for natural_key, assigning it on first sighting.

        Returns:
            (id, is_new) where is_new is True for exactly one caller per key

        Raises:
            NormalizationInvariantError: If the derived id already belongs to
                another natural key
        """
        candidate = synthetic_id(self.kind, natural_key)
        with self._lock:
            existing = self._ids.get(natural_key)
            if existing is not None:
                return existing, False
            owner = self._keys.get(candidate)
            if owner is not None:
                raise NormalizationInvariantError(
                    f"{self.kind}: id {candidate} already assigned to {owner!r}, "
                    f"cannot assign it to {natural_key!r}"
                )
            self._ids[natural_key] = candidate
            self._keys[candidate] = natural_key
        return candidate, True

    def get(self, natural_key: str) -> Optional[int]:
        with self._lock:
            return self._ids.get(natural_key)

    def key_for(self, synthetic: int) -> Optional[str]:
        with self._lock:
            return self._keys.get(synthetic)

    def __contains__(self, natural_key: str) -> bool:
        return self.get(natural_key) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)


class ClaimRegistry:
    """First-claim-wins set of primary keys."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._claimed: set[str] = set()

    def claim(self, key: str) -> bool:
        """Return True if this call claimed key, False if it was already taken."""
        with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
        return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._claimed

    def __len__(self) -> int:
        with self._lock:
            return len(self._claimed)


class RegistrySet:
    """
    All registries of one run.

    The per-kind mapping is built once at construction and never mutated, so
    looking up a registry needs no lock; only the registries themselves do.
    """

    def __init__(self, kinds: Iterable[str]):
        self._references: Dict[str, ReferenceRegistry] = {
            kind: ReferenceRegistry(kind) for kind in kinds
        }
        self.products = ClaimRegistry('products')
        self.presentations = ClaimRegistry('presentations')

    def reference(self, kind: str) -> ReferenceRegistry:
        try:
            return self._references[kind]
        except KeyError:
            raise KeyError(f"Unknown reference kind: {kind}") from None

    def sizes(self) -> Dict[str, int]:
        return {kind: len(registry) for kind, registry in self._references.items()}
