"""
Unit tests for the mapping management service

Tests:
- Field selection: expand, open existing, create new, bind into active
- Ambiguous selection
- Promotion of the active mapping into the persisted list
- Pair, endpoint and field action edits
- Background saves and save failures
"""

from unittest.mock import Mock

import pytest

from datamapper.errors import (
    ActionNotApplicable,
    AmbiguousMappingSelection,
    DataMapperError,
    MappingSessionNotReady,
    SaveFailure,
)
from datamapper.exporter.mapping_serializer import MappingSerializer
from datamapper.mapper.definition import MappingDefinition
from datamapper.mapper.mapping import MappingModel
from datamapper.mapper.transition import TransitionDelimiter, TransitionMode
from datamapper.services.error_handler import ErrorHandler, ErrorLevel
from datamapper.services.management import MappingManagementService

SOURCE_CLASS = "twitter4j.Status"
TARGET_CLASS = "org.apache.camel.salesforce.dto.Contact"


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def definition(documents, mapping_json):
    """Definition loaded from the mapping file and reconciled with the documents"""
    definition = MappingDefinition()
    MappingSerializer.deserialize_mapping_service_json(mapping_json, definition)
    definition.run_consistency_pass(documents)
    return definition


@pytest.fixture
def client():
    return Mock()


@pytest.fixture
def service(definition, documents, catalog, client):
    service = MappingManagementService(definition, documents, catalog, ErrorHandler(), mapping_client=client)
    yield service
    service.close()


def field(documents, identifier, path):
    return documents.get_doc(identifier).get_field(path)


class TestSelectField:
    """Test select_field flows"""

    def test_non_terminal_field_toggles_collapsed(self, service, documents, client):
        user = field(documents, SOURCE_CLASS, "User")
        assert user.collapsed

        assert service.select_field(user) is None
        assert not user.collapsed
        assert service.definition.active_mapping is None

        service.select_field(user)
        assert user.collapsed
        client.save_mapping.assert_not_called()

    def test_opens_existing_mapping(self, service, documents, client):
        text = field(documents, SOURCE_CLASS, "Text")
        description = field(documents, TARGET_CLASS, "Description")

        mapping = service.select_field(text)
        service.wait_for_saves(5)

        assert mapping is service.definition.mappings[0]
        assert service.definition.active_mapping is mapping
        assert text.selected and description.selected
        client.save_mapping.assert_not_called()

    def test_creates_new_mapping(self, service, documents):
        count = field(documents, SOURCE_CLASS, "RetweetCount")

        mapping = service.select_field(count)

        assert service.definition.active_mapping is mapping
        assert mapping.get_fields(True) == [count]
        assert not service.definition.is_persisted(mapping)
        assert len(service.definition.mappings) == 3

    def test_binds_into_active_mapping(self, service, documents, client):
        count = field(documents, SOURCE_CLASS, "RetweetCount")
        employees = field(documents, TARGET_CLASS, "NumberOfEmployees")

        mapping = service.select_field(count)
        assert service.select_field(employees) is mapping
        service.wait_for_saves(5)

        pair = mapping.get_first_field_mapping()
        assert pair.get_fields(False) == [employees]
        assert pair.transition.mode == TransitionMode.MAP
        assert service.definition.mappings[-1] is mapping
        payload = client.save_mapping.call_args.args[0]
        assert len(payload["AtlasMapping"]["fieldMappings"]["fieldMapping"]) == 4

    def test_enum_fields_create_lookup_table(self, service, documents):
        lang = field(documents, SOURCE_CLASS, "Lang")
        language = field(documents, TARGET_CLASS, "Language")

        service.select_field(lang)
        mapping = service.select_field(language)

        pair = mapping.get_first_field_mapping()
        assert pair.transition.mode == TransitionMode.LOOKUPTABLE
        table = service.definition.get_table_by_name(pair.transition.lookup_table_name)
        assert [(e.source_value, e.target_value) for e in table.entries] == [
            ("EN", "EN"),
            ("FR", "FR"),
            ("DE", None),
        ]

    def test_ambiguous_selection(self, service, documents):
        text = field(documents, SOURCE_CLASS, "Text")
        title = field(documents, TARGET_CLASS, "Title")
        other = MappingModel()
        pair = other.get_first_field_mapping()
        pair.get_mapped_fields(True)[0].bind(text)
        pair.get_mapped_fields(False)[0].bind(title)
        service.definition.add_mapping(other)

        prompted = Mock()
        service.mapping_selection_required.subscribe(prompted)

        with pytest.raises(AmbiguousMappingSelection) as exc_info:
            service.select_field(text)

        assert len(exc_info.value.mappings) == 2
        prompted.assert_called_once_with(text)
        assert service.definition.active_mapping is None

    def test_unselectable_field_is_rejected(self, service, documents):
        text = field(documents, SOURCE_CLASS, "Text")
        text.available_for_selection = False
        text.selection_exclusion_reason = "field not found in document"

        assert service.select_field(text) is None
        warnings = service.error_handler.get_errors(ErrorLevel.WARN)
        assert len(warnings) == 1
        assert "field not found in document" in warnings[0].message

    def test_not_ready(self, definition, documents, catalog):
        service = MappingManagementService(
            definition, documents, catalog, ErrorHandler(), is_ready=lambda: False
        )
        with pytest.raises(MappingSessionNotReady):
            service.select_field(field(documents, SOURCE_CLASS, "Text"))

    def test_deselect_clears_selection(self, service, documents):
        text = field(documents, SOURCE_CLASS, "Text")
        service.select_field(text)

        service.deselect_mapping()

        assert service.definition.active_mapping is None
        assert not text.selected


class TestMappingLifecycle:
    """Test mapping creation and removal"""

    def test_new_mapping_is_not_persisted_until_both_sides_bound(self, service):
        mapping = service.add_new_mapping()
        assert service.definition.active_mapping is mapping
        assert not service.definition.is_persisted(mapping)
        assert service.save_current_mapping() is False

    def test_remove_mapping(self, service, client):
        mapping = service.definition.mappings[0]
        service.select_mapping(mapping)

        service.remove_mapping(mapping)
        service.wait_for_saves(5)

        assert mapping not in service.definition.mappings
        assert service.definition.active_mapping is None
        client.save_mapping.assert_called_once()

    def test_remove_unsaved_mapping_sends_nothing(self, service, client):
        mapping = MappingModel()
        service.definition.active_mapping = mapping

        service.remove_mapping(mapping)

        client.save_mapping.assert_not_called()

    def test_notifications(self, service):
        updated = Mock()
        service.mapping_updated.subscribe(updated)

        service.select_mapping(service.definition.mappings[0])
        service.deselect_mapping()

        assert updated.call_count == 2


class TestPairsAndFields:
    """Test edits within the active mapping"""

    def test_add_pair_requires_active_mapping(self, service):
        with pytest.raises(DataMapperError):
            service.add_mapped_pair()

    def test_add_and_remove_pair(self, service):
        mapping = service.definition.mappings[0]
        service.select_mapping(mapping)

        pair = service.add_mapped_pair()
        assert len(mapping.field_mappings) == 2

        service.remove_mapped_pair(pair)
        assert len(mapping.field_mappings) == 1
        assert service.definition.active_mapping is mapping

    def test_removing_last_pair_removes_mapping(self, service):
        mapping = service.definition.mappings[0]
        service.select_mapping(mapping)

        service.remove_mapped_pair(mapping.get_first_field_mapping())

        assert mapping not in service.definition.mappings
        assert service.definition.active_mapping is None

    def test_second_input_switches_to_combine(self, service, documents):
        mapping = service.definition.mappings[0]
        pair = mapping.get_first_field_mapping()

        service.add_mapped_field(pair, True, field(documents, SOURCE_CLASS, "User.ScreenName"))

        assert pair.transition.mode == TransitionMode.COMBINE
        assert pair.transition.delimiter == TransitionDelimiter.SPACE

    def test_add_output_to_separate(self, service, documents):
        pair = service.definition.mappings[1].get_first_field_mapping()

        service.add_mapped_field(pair, False, field(documents, TARGET_CLASS, "Title"))

        assert len(pair.output_fields) == 3
        assert pair.transition.mode == TransitionMode.SEPARATE

    def test_remove_output_back_to_map(self, service):
        pair = service.definition.mappings[1].get_first_field_mapping()
        last_name = pair.output_fields[1]

        service.remove_mapped_field(pair, last_name, False)

        assert pair.transition.mode == TransitionMode.MAP
        assert pair.transition.delimiter is None
        assert not last_name.field.selected

    def test_removing_only_endpoint_leaves_unbound_slot(self, service):
        pair = service.definition.mappings[0].get_first_field_mapping()

        service.remove_mapped_field(pair, pair.input_fields[0], True)

        assert len(pair.input_fields) == 1
        assert not pair.input_fields[0].is_bound()

    def test_field_actions(self, service):
        mapped = service.definition.mappings[0].get_first_field_mapping().input_fields[0]

        action = service.add_field_action(mapped, "Substring", [2, 5])
        assert action.arguments == {"startIndex": 2, "length": 5}

        with pytest.raises(ActionNotApplicable):
            service.add_field_action(mapped, "Ceiling")
        assert mapped.actions == [action]

        service.remove_field_action(mapped, action)
        assert mapped.actions == []

    def test_pair_from_unknown_mapping(self, service):
        stray = MappingModel().get_first_field_mapping()
        with pytest.raises(DataMapperError):
            service.update_mapped_field(stray)


class TestPersistence:
    """Test serialization and background saves"""

    def test_serialize_unchanged_definition(self, service, mapping_json):
        assert service.serialize_mappings_to_json() == mapping_json

    def test_saves_in_call_order(self, service, client):
        saved = []
        client.save_mapping.side_effect = lambda payload: saved.append(
            len(payload["AtlasMapping"]["fieldMappings"]["fieldMapping"])
        )
        service.select_mapping(service.definition.mappings[0])

        service.remove_mapping(service.definition.mappings[0])
        service.remove_mapping(service.definition.mappings[0])
        service.wait_for_saves(5)

        assert saved == [2, 1]

    def test_mapping_saved_published(self, service):
        saved = Mock()
        service.mapping_saved.subscribe(saved)

        service.save_mapping_to_service().result(5)

        saved.assert_called_once()
        assert saved.call_args.args[0]["AtlasMapping"]["name"] == "UI.867332"

    def test_save_failure_is_reported(self, service, client):
        client.save_mapping.side_effect = SaveFailure("500 Server Error")

        assert service.save_mapping_to_service().result(5) is False

        errors = service.error_handler.get_errors(ErrorLevel.ERROR)
        assert [e.message for e in errors] == ["Error occurred while saving mapping."]

    def test_no_client_keeps_changes_local(self, definition, documents, catalog):
        service = MappingManagementService(definition, documents, catalog, ErrorHandler())
        assert service.save_mapping_to_service() is None
