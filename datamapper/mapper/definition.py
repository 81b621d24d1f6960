"""Session-wide mapping state and its consistency rules."""
import logging
import random
from typing import Dict, List, Optional, Tuple

from datamapper.errors import UnresolvedFieldReference
from datamapper.mapper.lookup_table import LookupTable, LookupTableEntry
from datamapper.mapper.mapping import FieldMappingPair, MappedField, MappingModel, ParsedFieldReference
from datamapper.schema.models import DocumentSet, DocumentType, Field, NamespaceModel

logger = logging.getLogger(__name__)


class MappingDefinition:
    """
    All mappings and lookup tables of one session.

    Holds the persisted mappings in order, the lookup tables keyed by name,
    and at most one active mapping (which may not be persisted yet).
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or f"UI.{random.randrange(1000000):06d}"
        self.source_uri: Optional[str] = None
        self.target_uri: Optional[str] = None
        self.mappings: List[MappingModel] = []
        self.active_mapping: Optional[MappingModel] = None
        self.namespaces: Dict[str, Optional[str]] = {}  # alias -> uri, from mapping files
        self._tables: Dict[str, LookupTable] = {}

    # ------------------------------------------------------------------
    # Lookup tables
    # ------------------------------------------------------------------

    def add_table(self, table: LookupTable) -> None:
        self._tables[table.name] = table

    def get_table_by_name(self, name: Optional[str]) -> Optional[LookupTable]:
        if name is None:
            return None
        return self._tables.get(name)

    def get_tables(self) -> List[LookupTable]:
        return list(self._tables.values())

    def initialize_mapping_lookup_table(self, mapping: MappingModel) -> None:
        """
        Create the lookup table of every LOOKUPTABLE pair that does not have
        one yet, and prefill tables that still have no entries.
        """
        for pair in mapping.field_mappings:
            if not pair.transition.is_lookup_mode():
                continue
            name = pair.transition.lookup_table_name or pair.lookup_table_identifier()
            pair.transition.lookup_table_name = name

            table = self._tables.get(name)
            if table is None:
                table = LookupTable(name=name)
                self.add_table(table)
                logger.debug(f"Created lookup table {name}")
            if not table.entries:
                self._prefill_table(table, pair)

            sources = pair.get_fields(True)
            targets = pair.get_fields(False)
            if table.source_identifier is None and sources:
                table.source_identifier = sources[0].class_name or sources[0].identity
            if table.target_identifier is None and targets:
                table.target_identifier = targets[0].class_name or targets[0].identity

    @staticmethod
    def _prefill_table(table: LookupTable, pair: FieldMappingPair) -> None:
        """One entry per source enum value, matched to a same-named target value."""
        sources = [mf.field for mf in pair.input_fields if mf.is_available()]
        targets = [mf.field for mf in pair.output_fields if mf.is_available()]
        if not sources:
            return
        target_names = {v.name for t in targets for v in t.enum_values}
        for value in sources[0].enum_values:
            table.entries.append(
                LookupTableEntry(
                    source_value=value.name,
                    target_value=value.name if value.name in target_names else None,
                )
            )
        if table.entries:
            logger.debug(f"Prefilled lookup table {table.name} with {len(table.entries)} entries")

    # ------------------------------------------------------------------
    # Mapping list
    # ------------------------------------------------------------------

    def get_all_mappings(self, include_active: bool = False) -> List[MappingModel]:
        result = list(self.mappings)
        if include_active and self.active_mapping is not None and self.active_mapping not in result:
            result.append(self.active_mapping)
        return result

    def is_persisted(self, mapping: MappingModel) -> bool:
        return mapping in self.mappings

    def add_mapping(self, mapping: MappingModel) -> None:
        if mapping not in self.mappings:
            self.mappings.append(mapping)

    def remove_mapping(self, mapping: MappingModel) -> bool:
        """
        Remove a mapping and any lookup table only it used.

        Returns:
            True if the mapping had been persisted
        """
        was_saved = mapping in self.mappings
        if was_saved:
            self.mappings.remove(mapping)
        if self.active_mapping is mapping:
            self.active_mapping = None

        table_name = mapping.lookup_table_name
        if table_name and not any(m.lookup_table_name == table_name for m in self.mappings):
            self._tables.pop(table_name, None)
        return was_saved

    def find_mappings_for_field(self, field: Field) -> List[MappingModel]:
        return [m for m in self.mappings if m.is_field_mapped(field)]

    def get_mapped_fields_of_all_mappings(self) -> List[Field]:
        fields = []
        for mapping in self.get_all_mappings(include_active=True):
            fields.extend(mapping.get_all_fields())
        return fields

    # ------------------------------------------------------------------
    # Consistency pass
    # ------------------------------------------------------------------

    def run_consistency_pass(self, documents: DocumentSet) -> None:
        """
        Reconcile loaded mappings with loaded documents.

        Order: table identifiers, namespace sync, field repair, stale pruning,
        then document flags. Repair reads namespace-qualified paths; pruning
        reads repaired endpoints.
        """
        self.detect_table_identifiers(documents)
        self.update_document_namespaces_from_mappings(documents)
        self.update_mappings_from_documents(documents)
        removed = self.remove_stale_mappings()

        mapped_fields = self.get_mapped_fields_of_all_mappings()
        for doc in documents.get_all_docs():
            doc.update_from_mappings(mapped_fields)

        logger.info(
            f"Consistency pass finished: {len(self.mappings)} mappings, "
            f"{len(self._tables)} lookup tables, {len(removed)} stale mappings removed"
        )

    def detect_table_identifiers(self, documents: Optional[DocumentSet] = None) -> None:
        """
        Name the lookup table of every LOOKUPTABLE pair that has none.

        Placeholder endpoints are named after the document they will resolve
        to, so a reloaded mapping gets the same name as the one built live.
        Tables are only created here for pairs whose endpoints are all
        available; the others get theirs once repair has bound them.
        """
        for mapping in self.get_all_mappings(include_active=True):
            for pair in mapping.field_mappings:
                if not pair.transition.is_lookup_mode():
                    continue
                if not pair.transition.lookup_table_name:
                    pair.transition.lookup_table_name = self._table_name_for(pair, documents)
                bound = [mf for mf in pair.get_all_mapped_fields() if mf.is_bound()]
                if bound and all(mf.is_available() for mf in bound):
                    self.initialize_mapping_lookup_table(mapping)

    def _table_name_for(self, pair: FieldMappingPair, documents: Optional[DocumentSet]) -> str:
        identities = []
        for is_source in (True, False):
            bound = [mf for mf in pair.get_mapped_fields(is_source) if mf.is_bound()]
            identities.append(self._endpoint_identity(bound[0], is_source, documents) if bound else "")
        return LookupTable.identifier_for(*identities)

    @staticmethod
    def _endpoint_identity(
        mapped_field: MappedField,
        is_source: bool,
        documents: Optional[DocumentSet],
    ) -> str:
        ref = mapped_field.parsed_reference
        if ref is None or documents is None:
            return mapped_field.field.identity
        doc, found = documents.find_field(ref.path, is_source, ref.document_type, ref.doc_identifier)
        if found is None and ref.doc_identifier is not None:
            doc, _ = documents.find_field(ref.path, is_source, ref.document_type)
        owner = doc.identifier if doc is not None else (ref.doc_identifier or "")
        return f"{owner}:{ref.path}"


    def update_document_namespaces_from_mappings(self, documents: DocumentSet) -> int:
        """
        Register namespace prefixes used by XML field paths in mappings but
        unknown to the owning document.

        Returns:
            Number of namespaces added
        """
        added = 0
        for mapping in self.get_all_mappings(include_active=True):
            for is_source in (True, False):
                for mapped_field in mapping.get_mapped_fields(is_source):
                    reference = self._reference_of(mapped_field)
                    if reference is None or reference[1] != DocumentType.XML:
                        continue
                    path, _, doc_identifier = reference
                    doc, _ = documents.find_field(path, is_source, DocumentType.XML, doc_identifier)
                    if doc is None and doc_identifier is not None:
                        doc, _ = documents.find_field(path, is_source, DocumentType.XML)
                    if doc is None:
                        continue
                    for alias in doc.namespace_aliases_in_path(path):
                        if doc.get_namespace_for_alias(alias) is not None:
                            continue
                        doc.add_namespace(
                            NamespaceModel(alias=alias, uri=self.namespaces.get(alias), created_by_user=True)
                        )
                        logger.debug(f"Added namespace '{alias}' to {doc.fully_qualified_name}")
                        added += 1
        return added

    def update_mappings_from_documents(self, documents: DocumentSet) -> int:
        """
        Re-resolve every mapped field against the loaded document trees.

        Unresolvable references are kept, flagged unavailable.

        Returns:
            Number of mapped fields left unavailable
        """
        unresolved = 0
        for mapping in self.get_all_mappings(include_active=True):
            for pair in mapping.field_mappings:
                for is_source in (True, False):
                    for mapped_field in pair.get_mapped_fields(is_source):
                        if not self.resolve_mapped_field(mapped_field, is_source, documents):
                            unresolved += 1
                pair.update_transition()
            if mapping.lookup_table_name:
                self.initialize_mapping_lookup_table(mapping)
        return unresolved

    def remove_stale_mappings(self) -> List[MappingModel]:
        """Drop mappings lacking an available endpoint on either side."""
        kept, removed = [], []
        for mapping in self.mappings:
            if (
                mapping.field_mappings
                and mapping.has_available_fields(True)
                and mapping.has_available_fields(False)
            ):
                kept.append(mapping)
            else:
                removed.append(mapping)
        self.mappings = kept
        if self.active_mapping in removed:
            self.active_mapping = None
        for mapping in removed:
            logger.info(f"Removed stale mapping {mapping.uuid}")
        return removed

    @staticmethod
    def _reference_of(mapped_field: MappedField) -> Optional[Tuple[str, DocumentType, Optional[str]]]:
        """(path, document type, document identifier) a mapped field points at."""
        if mapped_field.parsed_reference is not None:
            ref = mapped_field.parsed_reference
            return ref.path, ref.document_type, ref.doc_identifier
        if not mapped_field.is_bound() or mapped_field.field.doc_def is None:
            return None
        doc = mapped_field.field.doc_def
        return mapped_field.field.path, doc.document_type, doc.identifier

    def resolve_mapped_field(
        self,
        mapped_field: MappedField,
        is_source: bool,
        documents: DocumentSet,
    ) -> bool:
        if not mapped_field.is_bound():
            return True

        reference = self._reference_of(mapped_field)
        if reference is None:
            return mapped_field.available
        path, doc_type, doc_identifier = reference

        doc, found = documents.find_field(path, is_source, doc_type, doc_identifier)
        if found is None and doc_identifier is not None:
            doc, found = documents.find_field(path, is_source, doc_type)
        if found is not None:
            mapped_field.bind(found)
            return True

        placeholder = (
            mapped_field.parsed_reference.placeholder
            if mapped_field.parsed_reference is not None
            else mapped_field.field
        )

        if is_source and doc_type in (DocumentType.PROPERTY, DocumentType.CONSTANT):
            synthetic = documents.property_doc if doc_type == DocumentType.PROPERTY else documents.constant_doc
            mapped_field.bind(synthetic.create_user_field(placeholder.name, placeholder.value, placeholder.type))
            return True

        error = UnresolvedFieldReference(path, doc.fully_qualified_name if doc is not None else None)
        logger.warning(str(error))
        if mapped_field.parsed_reference is None:
            mapped_field.parsed_reference = ParsedFieldReference(
                document_type=doc_type,
                path=path,
                placeholder=placeholder,
                doc_identifier=doc_identifier,
            )
        placeholder.available_for_selection = False
        placeholder.selection_exclusion_reason = "field not found in document"
        mapped_field.mark_unavailable(placeholder, str(error))
        return False
