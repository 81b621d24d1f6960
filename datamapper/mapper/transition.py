"""Transition model: how the inputs of a pair combine into its outputs."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class TransitionMode(str, Enum):
    MAP = "MAP"
    SEPARATE = "SEPARATE"
    COMBINE = "COMBINE"
    LOOKUPTABLE = "LOOKUPTABLE"


class TransitionDelimiter(str, Enum):
    """Delimiter strategies understood by the mapping service."""

    SPACE = "SPACE"
    COMMA = "COMMA"
    SEMICOLON = "SEMICOLON"
    COLON = "COLON"
    DASH = "DASH"
    PERIOD = "PERIOD"
    SLASH = "SLASH"
    BACKSLASH = "BACKSLASH"
    UNDERSCORE = "UNDERSCORE"
    PIPE = "PIPE"
    TAB = "TAB"


DEFAULT_DELIMITER = TransitionDelimiter.SPACE

DELIMITED_MODES = (TransitionMode.SEPARATE, TransitionMode.COMBINE)


@dataclass
class FieldAction:
    """
    One action applied to a mapped field.

    arguments are keyed by their wire names (e.g. "startIndex") and keep
    insertion order.
    """

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def get_argument(self, key: str, default: Any = None) -> Any:
        return self.arguments.get(key, default)


@dataclass
class TransitionModel:
    """
    Combination rule of a field mapping pair.

    The mode is never set by hand: FieldMappingPair.update_transition()
    derives it from the pair's endpoints.
    """

    mode: TransitionMode = TransitionMode.MAP
    delimiter: Optional[TransitionDelimiter] = None
    lookup_table_name: Optional[str] = None

    def is_separate_mode(self) -> bool:
        return self.mode == TransitionMode.SEPARATE

    def is_combine_mode(self) -> bool:
        return self.mode == TransitionMode.COMBINE

    def is_map_mode(self) -> bool:
        return self.mode == TransitionMode.MAP

    def is_lookup_mode(self) -> bool:
        return self.mode == TransitionMode.LOOKUPTABLE

    def apply_mode(self, mode: TransitionMode) -> None:
        """Set the mode and bring the delimiter in line with it."""
        self.mode = mode
        if mode in DELIMITED_MODES:
            if self.delimiter is None:
                self.delimiter = DEFAULT_DELIMITER
        else:
            self.delimiter = None
        if mode != TransitionMode.LOOKUPTABLE:
            self.lookup_table_name = None

    def get_pretty_name(self) -> str:
        if self.mode in DELIMITED_MODES:
            label = "Separate" if self.mode == TransitionMode.SEPARATE else "Combine"
            return f"{label} ({self.delimiter.value.lower()})"
        if self.mode == TransitionMode.LOOKUPTABLE:
            return f"Lookup ({self.lookup_table_name or 'no table'})"
        return "Map"
