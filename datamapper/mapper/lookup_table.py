"""Lookup tables backing LOOKUPTABLE transitions."""
import hashlib
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class LookupTableEntry:
    """Translates one source enum value into one target enum value."""

    source_value: str
    target_value: Optional[str] = None
    source_type: str = "STRING"
    target_type: str = "STRING"


@dataclass
class LookupTable:
    """Ordered enum-value translation table."""

    name: str
    description: Optional[str] = None
    source_identifier: Optional[str] = None
    target_identifier: Optional[str] = None
    entries: List[LookupTableEntry] = field(default_factory=list)

    @staticmethod
    def identifier_for(source_identity: str, target_identity: str) -> str:
        """Deterministic table name for a pair of endpoint identities."""
        digest = hashlib.md5(f"{source_identity}->{target_identity}".encode()).hexdigest()[:12]
        return f"lookup_{digest}"

    def add_entry(self, entry: LookupTableEntry) -> None:
        existing = self.get_entry_for_source(entry.source_value)
        if existing is not None:
            existing.target_value = entry.target_value
            existing.target_type = entry.target_type
            return
        self.entries.append(entry)

    def get_entry_for_source(self, source_value: str) -> Optional[LookupTableEntry]:
        for entry in self.entries:
            if entry.source_value == source_value:
                return entry
        return None

    def remove_entry(self, source_value: str) -> bool:
        entry = self.get_entry_for_source(source_value)
        if entry is None:
            return False
        self.entries.remove(entry)
        return True

    def is_complete(self) -> bool:
        """True when every source value has a target."""
        return bool(self.entries) and all(e.target_value is not None for e in self.entries)
