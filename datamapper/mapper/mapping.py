"""Data mapping model."""
import uuid
from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, List, Optional

from datamapper.mapper.lookup_table import LookupTable
from datamapper.mapper.transition import FieldAction, TransitionMode, TransitionModel
from datamapper.schema.models import NONE_FIELD, DocumentType, Field
from datamapper.transformer.registry import FieldActionCatalog


@dataclass
class ParsedFieldReference:
    """Where a deserialized field claims to live, kept until it is resolved."""

    document_type: DocumentType
    path: str
    placeholder: Field
    doc_identifier: Optional[str] = None


@dataclass(eq=False)
class MappedField:
    """One endpoint binding inside a field mapping pair."""

    field: Field = NONE_FIELD
    actions: List[FieldAction] = dataclass_field(default_factory=list)
    index: Optional[int] = None  # position for SEPARATE / COMBINE
    available: bool = True
    unavailable_reason: Optional[str] = None
    parsed_reference: Optional[ParsedFieldReference] = None

    def is_bound(self) -> bool:
        return self.field is not NONE_FIELD

    def is_available(self) -> bool:
        """Bound to a field that exists in a loaded document."""
        return self.is_bound() and self.available

    def bind(self, target: Field) -> None:
        self.field = target
        self.available = True
        self.unavailable_reason = None
        self.parsed_reference = None

    def mark_unavailable(self, placeholder: Field, reason: str) -> None:
        self.field = placeholder
        self.available = False
        self.unavailable_reason = reason

    def add_action(
        self,
        name: str,
        catalog: FieldActionCatalog,
        argument_values: Optional[List[Any]] = None,
    ) -> FieldAction:
        """
        Attach an action to this endpoint.

        Raises:
            ActionNotApplicable: if the catalog rejects the action for this field
        """
        config = catalog.check_applicable(name, self.field)
        values = list(argument_values or [])
        arguments: Dict[str, Any] = {}
        for i, key in enumerate(config.argument_keys):
            arguments[key] = values[i] if i < len(values) else None
        action = FieldAction(name=config.wire_name, arguments=arguments)
        self.actions.append(action)
        return action

    def remove_action(self, action: FieldAction) -> None:
        self.actions.remove(action)


class FieldMappingPair:
    """A set of input fields mapped to a set of output fields through one transition."""

    def __init__(self):
        self.input_fields: List[MappedField] = [MappedField()]
        self.output_fields: List[MappedField] = [MappedField()]
        self.transition = TransitionModel()

    def get_mapped_fields(self, is_source: bool) -> List[MappedField]:
        return self.input_fields if is_source else self.output_fields

    def get_all_mapped_fields(self) -> List[MappedField]:
        return self.input_fields + self.output_fields

    def add_mapped_field(self, mapped_field: MappedField, is_source: bool) -> MappedField:
        self.get_mapped_fields(is_source).append(mapped_field)
        return mapped_field

    def remove_mapped_field(self, mapped_field: MappedField, is_source: bool) -> None:
        fields = self.get_mapped_fields(is_source)
        if mapped_field in fields:
            fields.remove(mapped_field)
        if not fields:
            fields.append(MappedField())

    def get_last_mapped_field(self, is_source: bool) -> Optional[MappedField]:
        fields = self.get_mapped_fields(is_source)
        return fields[-1] if fields else None

    def get_mapped_field_for_field(self, target: Field, is_source: bool) -> Optional[MappedField]:
        for mapped_field in self.get_mapped_fields(is_source):
            if mapped_field.field is target:
                return mapped_field
        return None

    def get_fields(self, is_source: bool) -> List[Field]:
        return [mf.field for mf in self.get_mapped_fields(is_source) if mf.is_bound()]

    def get_all_fields(self) -> List[Field]:
        return self.get_fields(True) + self.get_fields(False)

    def has_field(self, target: Field) -> bool:
        return any(mf.field is target for mf in self.get_all_mapped_fields())

    def has_bound_fields(self, is_source: bool) -> bool:
        return any(mf.is_bound() for mf in self.get_mapped_fields(is_source))

    def has_available_fields(self, is_source: bool) -> bool:
        return any(mf.is_available() for mf in self.get_mapped_fields(is_source))

    def is_enum_mapping(self) -> bool:
        inputs = any(f.enumeration for f in self.get_fields(True))
        outputs = any(f.enumeration for f in self.get_fields(False))
        return inputs and outputs

    def lookup_table_identifier(self) -> str:
        source = self.get_fields(True)
        target = self.get_fields(False)
        return LookupTable.identifier_for(
            source[0].identity if source else "",
            target[0].identity if target else "",
        )

    def update_transition(self) -> TransitionModel:
        """Derive the transition mode from the current endpoints."""
        if self.is_enum_mapping():
            mode = TransitionMode.LOOKUPTABLE
        elif len(self.input_fields) > 1:
            mode = TransitionMode.COMBINE
        elif len(self.output_fields) > 1:
            mode = TransitionMode.SEPARATE
        else:
            mode = TransitionMode.MAP

        previous_table = self.transition.lookup_table_name
        self.transition.apply_mode(mode)
        if mode == TransitionMode.LOOKUPTABLE:
            self.transition.lookup_table_name = previous_table or self.lookup_table_identifier()
        return self.transition


class MappingModel:
    """One user-visible mapping: an ordered list of field mapping pairs."""

    def __init__(self, name: Optional[str] = None):
        self.uuid = f"mapping.{uuid.uuid4().hex[:8]}"
        self.name = name
        self.field_mappings: List[FieldMappingPair] = [FieldMappingPair()]
        # never observed true; kept for the UI
        self.brand_new_mapping = False

    def get_first_field_mapping(self) -> Optional[FieldMappingPair]:
        return self.field_mappings[0] if self.field_mappings else None

    def get_current_field_mapping(self) -> Optional[FieldMappingPair]:
        return self.field_mappings[-1] if self.field_mappings else None

    def add_mapped_pair(self, pair: Optional[FieldMappingPair] = None) -> FieldMappingPair:
        pair = pair or FieldMappingPair()
        self.field_mappings.append(pair)
        return pair

    def remove_mapped_pair(self, pair: FieldMappingPair) -> None:
        if pair in self.field_mappings:
            self.field_mappings.remove(pair)

    def get_mapped_fields(self, is_source: bool) -> List[MappedField]:
        result = []
        for pair in self.field_mappings:
            result.extend(pair.get_mapped_fields(is_source))
        return result

    def get_fields(self, is_source: bool) -> List[Field]:
        result = []
        for pair in self.field_mappings:
            result.extend(pair.get_fields(is_source))
        return result

    def get_all_fields(self) -> List[Field]:
        return self.get_fields(True) + self.get_fields(False)

    def is_field_mapped(self, target: Field) -> bool:
        return any(pair.has_field(target) for pair in self.field_mappings)

    def has_bound_fields(self, is_source: bool) -> bool:
        return any(pair.has_bound_fields(is_source) for pair in self.field_mappings)

    def has_available_fields(self, is_source: bool) -> bool:
        return any(pair.has_available_fields(is_source) for pair in self.field_mappings)

    @property
    def lookup_table_name(self) -> Optional[str]:
        for pair in self.field_mappings:
            if pair.transition.is_lookup_mode() and pair.transition.lookup_table_name:
                return pair.transition.lookup_table_name
        return None

    def __repr__(self) -> str:
        return f"MappingModel(uuid={self.uuid!r}, pairs={len(self.field_mappings)})"
