"""Error taxonomy for the data mapper core."""
from typing import Any, List, Optional


class DataMapperError(Exception):
    """Base class for data mapper errors."""

    pass


class FetchFailure(DataMapperError):
    """Raised when a document, mapping file or field action load fails."""

    def __init__(self, message: str, unit: Optional[str] = None):
        super().__init__(message)
        self.unit = unit


class SaveFailure(DataMapperError):
    """Raised when the mapping service rejects or cannot receive a save."""

    pass


class ActionNotApplicable(DataMapperError):
    """Raised when a field action does not fit the bound field's type."""

    def __init__(self, action_name: str, field_type: Optional[str]):
        super().__init__(
            f"Field action '{action_name}' cannot be applied to a field of type {field_type}"
        )
        self.action_name = action_name
        self.field_type = field_type


class AmbiguousMappingSelection(DataMapperError):
    """Raised when a selected field belongs to more than one mapping."""

    def __init__(self, field: Any, mappings: List[Any]):
        super().__init__(
            f"Field '{getattr(field, 'path', field)}' is part of {len(mappings)} mappings"
        )
        self.field = field
        self.mappings = mappings


class UnresolvedFieldReference(DataMapperError):
    """A stored field path could not be found in the live document schema."""

    def __init__(self, path: str, document: Optional[str] = None):
        where = f" in document '{document}'" if document else ""
        super().__init__(f"Could not resolve field '{path}'{where}")
        self.path = path
        self.document = document


class UnknownMappingType(DataMapperError):
    """Raised for a wire object whose jsonType matches no known variant."""

    def __init__(self, json_type: Optional[str], context: str = "field mapping"):
        super().__init__(f"Unrecognized {context} type: {json_type!r}")
        self.json_type = json_type


class MappingSessionNotReady(DataMapperError):
    """Raised when a mutation is attempted before initialization completes."""

    pass
