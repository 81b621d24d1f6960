"""
Unit tests for MappingDefinition and the consistency pass

Tests:
- Mapping list management and lookup table cleanup
- Lookup table creation, prefill and identifier detection for live and reloaded pairs
- Namespace sync for XML documents
- Field repair against loaded documents (placeholders, property/constant fields)
- Stale mapping pruning
"""

import pytest

from datamapper.mapper.definition import MappingDefinition
from datamapper.mapper.lookup_table import LookupTable
from datamapper.mapper.mapping import MappedField, MappingModel, ParsedFieldReference
from datamapper.mapper.transition import TransitionMode
from datamapper.schema.models import DocumentType, Field


def placeholder(path, document_type=DocumentType.JAVA, doc_identifier=None, **kwargs):
    """Mapped field that only knows where its field should be."""
    field = Field(name=path.rsplit(".", 1)[-1], path=path, **kwargs)
    mapped_field = MappedField()
    mapped_field.parsed_reference = ParsedFieldReference(
        document_type=document_type, path=path, placeholder=field, doc_identifier=doc_identifier
    )
    mapped_field.mark_unavailable(field, "document not loaded")
    return mapped_field


def mapping_of(inputs, outputs):
    mapping = MappingModel()
    pair = mapping.get_first_field_mapping()
    pair.input_fields = inputs
    pair.output_fields = outputs
    return mapping


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def definition():
    return MappingDefinition(name="UI.000001")


@pytest.fixture
def lookup_mapping(source_doc, target_doc):
    mapping = mapping_of(
        [MappedField(field=source_doc.get_field("Lang"))],
        [MappedField(field=target_doc.get_field("Language"))],
    )
    mapping.get_first_field_mapping().update_transition()
    return mapping


class TestMappingList:
    """Test add/remove of mappings"""

    def test_default_name(self):
        assert MappingDefinition().name.startswith("UI.")

    def test_add_is_idempotent(self, definition):
        mapping = MappingModel()
        definition.add_mapping(mapping)
        definition.add_mapping(mapping)
        assert definition.mappings == [mapping]
        assert definition.is_persisted(mapping)

    def test_remove_mapping_reports_persisted(self, definition):
        saved, unsaved = MappingModel(), MappingModel()
        definition.add_mapping(saved)
        definition.active_mapping = unsaved

        assert definition.remove_mapping(saved) is True
        assert definition.remove_mapping(unsaved) is False
        assert definition.active_mapping is None

    def test_remove_mapping_drops_unused_table(self, definition, lookup_mapping):
        definition.add_mapping(lookup_mapping)
        definition.initialize_mapping_lookup_table(lookup_mapping)
        assert len(definition.get_tables()) == 1

        definition.remove_mapping(lookup_mapping)

        assert definition.get_tables() == []

    def test_active_mapping_included_on_request(self, definition):
        saved, active = MappingModel(), MappingModel()
        definition.add_mapping(saved)
        definition.active_mapping = active
        assert definition.get_all_mappings() == [saved]
        assert definition.get_all_mappings(include_active=True) == [saved, active]

    def test_find_mappings_for_field(self, definition, source_doc, target_doc):
        text = source_doc.get_field("Text")
        first = mapping_of([MappedField(field=text)], [MappedField(field=target_doc.get_field("Title"))])
        second = mapping_of([MappedField(field=text)], [MappedField(field=target_doc.get_field("Description"))])
        definition.add_mapping(first)
        definition.add_mapping(second)

        assert definition.find_mappings_for_field(text) == [first, second]
        assert definition.find_mappings_for_field(source_doc.get_field("User.Name")) == []


class TestLookupTables:
    """Test lookup table initialization and identifier detection"""

    def test_table_prefilled_from_enum_values(self, definition, lookup_mapping):
        definition.initialize_mapping_lookup_table(lookup_mapping)
        table = definition.get_table_by_name(lookup_mapping.lookup_table_name)

        assert [(e.source_value, e.target_value) for e in table.entries] == [
            ("EN", "EN"),
            ("FR", "FR"),
            ("DE", None),
        ]

    def test_existing_table_is_reused(self, definition, lookup_mapping):
        name = lookup_mapping.lookup_table_name
        existing = LookupTable(name=name)
        definition.add_table(existing)

        definition.initialize_mapping_lookup_table(lookup_mapping)

        assert definition.get_table_by_name(name) is existing

    def test_detect_table_identifiers(self, definition, lookup_mapping):
        definition.add_mapping(lookup_mapping)
        definition.detect_table_identifiers()
        table = definition.get_table_by_name(lookup_mapping.lookup_table_name)

        assert table.source_identifier == "twitter4j.Lang"
        assert table.target_identifier == "org.apache.camel.salesforce.dto.Language"

    def test_detect_twice_gives_same_name(self, definition, lookup_mapping):
        definition.add_mapping(lookup_mapping)
        definition.detect_table_identifiers()
        first = lookup_mapping.lookup_table_name
        definition.detect_table_identifiers()
        assert lookup_mapping.lookup_table_name == first
        assert len(definition.get_tables()) == 1

    def test_placeholder_pair_named_like_live_pair(self, definition, documents, lookup_mapping):
        reloaded = mapping_of([placeholder("Lang")], [placeholder("Language")])
        reloaded.get_first_field_mapping().transition.apply_mode(TransitionMode.LOOKUPTABLE)
        definition.add_mapping(reloaded)

        definition.detect_table_identifiers(documents)

        assert reloaded.lookup_table_name == lookup_mapping.lookup_table_name
        assert definition.get_tables() == []

    def test_reloaded_table_filled_after_repair(self, definition, documents, lookup_mapping):
        reloaded = mapping_of([placeholder("Lang")], [placeholder("Language")])
        reloaded.get_first_field_mapping().transition.apply_mode(TransitionMode.LOOKUPTABLE)
        definition.add_mapping(reloaded)

        definition.run_consistency_pass(documents)

        table = definition.get_table_by_name(lookup_mapping.lookup_table_name)
        assert [e.source_value for e in table.entries] == ["EN", "FR", "DE"]
        assert table.source_identifier == "twitter4j.Lang"



class TestConsistencyPass:
    """Test the reconciliation of loaded mappings with loaded documents"""

    def test_placeholders_are_bound(self, definition, documents, source_doc, target_doc):
        mapping = mapping_of([placeholder("Text")], [placeholder("Title")])
        definition.add_mapping(mapping)

        definition.run_consistency_pass(documents)

        pair = mapping.get_first_field_mapping()
        assert pair.input_fields[0].field is source_doc.get_field("Text")
        assert pair.output_fields[0].field is target_doc.get_field("Title")
        assert pair.input_fields[0].available
        assert pair.input_fields[0].parsed_reference is None
        assert definition.mappings == [mapping]

    def test_unresolved_field_is_kept_unavailable(self, definition, documents):
        missing = placeholder("Nickname")
        mapping = mapping_of([placeholder("Text"), missing], [placeholder("Title")])
        definition.add_mapping(mapping)

        definition.run_consistency_pass(documents)

        assert definition.mappings == [mapping]
        assert missing in mapping.get_first_field_mapping().input_fields
        assert not missing.available
        assert missing.unavailable_reason
        assert missing.field.path == "Nickname"

    def test_stale_mapping_is_removed(self, definition, documents):
        stale = mapping_of([placeholder("Gone")], [placeholder("Title")])
        empty_side = mapping_of([placeholder("Text")], [MappedField()])
        kept = mapping_of([placeholder("User.Name")], [placeholder("Description")])
        for mapping in (stale, empty_side, kept):
            definition.add_mapping(mapping)
        definition.update_mappings_from_documents(documents)

        removed = definition.remove_stale_mappings()
        assert removed == [stale, empty_side]

    def test_pass_prunes_after_repair(self, definition, documents):
        stale = mapping_of([placeholder("Gone")], [placeholder("AlsoGone")])
        kept = mapping_of([placeholder("Text")], [placeholder("Title")])
        definition.add_mapping(stale)
        definition.add_mapping(kept)

        definition.run_consistency_pass(documents)

        assert definition.mappings == [kept]

    def test_repair_recomputes_transition(self, definition, documents):
        mapping = mapping_of([placeholder("Lang")], [placeholder("Language")])
        definition.add_mapping(mapping)

        definition.run_consistency_pass(documents)

        pair = mapping.get_first_field_mapping()
        assert pair.transition.mode == TransitionMode.LOOKUPTABLE
        assert definition.get_table_by_name(pair.transition.lookup_table_name) is not None

    def test_documents_flag_mapped_fields(self, definition, documents, source_doc):
        definition.add_mapping(mapping_of([placeholder("User.Name")], [placeholder("FirstName")]))

        definition.run_consistency_pass(documents)

        assert source_doc.get_field("User.Name").part_of_mapping
        assert source_doc.get_field("User").part_of_mapping
        assert not source_doc.get_field("Text").part_of_mapping

    def test_property_and_constant_fields_are_created(self, definition, documents):
        prop = placeholder("region", DocumentType.PROPERTY, value="EU")
        const = placeholder("42", DocumentType.CONSTANT, value="42")
        definition.add_mapping(mapping_of([prop], [placeholder("Title")]))
        definition.add_mapping(mapping_of([const], [placeholder("Description")]))

        definition.run_consistency_pass(documents)

        assert prop.available and prop.field.doc_def is documents.property_doc
        assert const.available and const.field.value == "42"
        assert documents.property_doc.get_field("region") is prop.field
        assert documents.constant_doc.get_field("42") is const.field

    def test_namespace_sync(self, definition, documents):
        xml = documents.add_xml_document("order.xsd", "<xs:schema/>", is_source=False)
        xml.add_field(Field(name="Order", path="/tns:Order", type="COMPLEX"))
        xml.add_field(Field(name="Id", path="/tns:Order/tns:Id"), xml.get_field("/tns:Order"))
        xml.initialized = True
        definition.namespaces["tns"] = "http://example.com/order"
        definition.add_mapping(
            mapping_of([placeholder("Text")], [placeholder("/tns:Order/tns:Id", DocumentType.XML, "order.xsd")])
        )

        added = definition.update_document_namespaces_from_mappings(documents)

        assert added == 1
        namespace = xml.get_namespace_for_alias("tns")
        assert namespace.uri == "http://example.com/order"
        assert namespace.created_by_user

    def test_namespace_sync_skips_known_aliases(self, definition, documents):
        xml = documents.add_xml_document("order.xsd", "<xs:schema/>", is_source=False)
        definition.add_mapping(
            mapping_of([placeholder("Text")], [placeholder("/tns:Order", DocumentType.XML, "order.xsd")])
        )
        assert definition.update_document_namespaces_from_mappings(documents) == 1
        assert definition.update_document_namespaces_from_mappings(documents) == 0
        assert len(xml.namespaces) == 1
