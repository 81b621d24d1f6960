"""Mapping validation."""
import logging
from typing import List, Optional

from datamapper.api.validation_client import ValidationClient
from datamapper.exporter.mapping_serializer import MappingSerializer
from datamapper.mapper.definition import MappingDefinition
from datamapper.mapper.transition import DELIMITED_MODES
from datamapper.schema.models import DocumentSet
from datamapper.transformer.registry import FieldActionCatalog

logger = logging.getLogger(__name__)


class MappingValidator:
    """Validates mappings before they are saved or exported."""

    def __init__(self, catalog: FieldActionCatalog, client: Optional[ValidationClient] = None):
        self.catalog = catalog
        self.client = client

    def validate(self, definition: MappingDefinition) -> List[str]:
        """Validate every persisted mapping."""
        errors = []

        for mapping in definition.get_all_mappings():
            for pair in mapping.field_mappings:
                # Each side needs a real endpoint
                for is_source, label in ((True, "source"), (False, "target")):
                    if not pair.has_bound_fields(is_source):
                        errors.append(f"Mapping {mapping.uuid} has no {label} field")
                    for mapped_field in pair.get_mapped_fields(is_source):
                        if mapped_field.is_bound() and not mapped_field.available:
                            errors.append(
                                f"Mapping {mapping.uuid}: {label} field "
                                f"'{mapped_field.field.path}' is unavailable ({mapped_field.unavailable_reason})"
                            )

                # Field actions must still fit their fields
                for mapped_field in pair.get_all_mapped_fields():
                    for action in mapped_field.actions:
                        config = self.catalog.get(action.name)
                        if config is None:
                            errors.append(f"Mapping {mapping.uuid}: unknown field action {action.name}")
                        elif not config.applies_to_field(mapped_field.field):
                            errors.append(
                                f"Mapping {mapping.uuid}: {action.name} cannot be applied to "
                                f"'{mapped_field.field.path}' ({mapped_field.field.type})"
                            )

                transition = pair.transition
                if transition.mode in DELIMITED_MODES and transition.delimiter is None:
                    errors.append(f"Mapping {mapping.uuid}: {transition.mode.value} without delimiter")

                if transition.is_lookup_mode():
                    table = definition.get_table_by_name(transition.lookup_table_name)
                    if table is None:
                        errors.append(
                            f"Mapping {mapping.uuid}: lookup table "
                            f"{transition.lookup_table_name} does not exist"
                        )
                    elif not table.entries:
                        errors.append(f"Mapping {mapping.uuid}: lookup table {table.name} has no entries")

        if errors:
            logger.warning(f"Local validation found {len(errors)} problems")
        return errors

    def validate_remote(
        self,
        definition: MappingDefinition,
        documents: Optional[DocumentSet] = None,
    ) -> List[str]:
        """Send the serialized mappings to the validation service."""
        if self.client is None:
            return []
        body = MappingSerializer.serialize_mappings(definition, documents)
        findings = self.client.validate(body)
        return [
            f"{f.get('status', 'ERROR')}: {f.get('message', '')}"
            + (f" ({f['id']})" if f.get("id") else "")
            for f in findings
        ]
