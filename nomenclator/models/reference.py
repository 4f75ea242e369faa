"""Reference entity entries read from dictionary documents."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


@dataclass
class ReferenceEntry:
    """
    One dictionary record, e.g. a laboratory with its address.

    attributes maps reference table columns to values; references maps a
    foreign key column to the (kind, natural key) it points at, e.g.
    {'dcsa_id': ('dcsa', '1234')} for a DCP entry.
    """
    kind: str
    key: str
    attributes: Dict[str, Optional[str]] = field(default_factory=dict)
    references: Dict[str, Tuple[str, str]] = field(default_factory=dict)
