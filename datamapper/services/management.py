"""
Mapping Management Service - the mutation API over the session's mappings.

Every public call runs under the session lock and ends with its notification,
so listeners and serializers never see a half-applied change. Calls that
change mappings (anything but pure selection) also schedule a save to the
mapping service; saves run one at a time in call order.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from datamapper.api.mapping_client import MappingServiceClient
from datamapper.errors import AmbiguousMappingSelection, DataMapperError, MappingSessionNotReady, SaveFailure
from datamapper.exporter.mapping_serializer import MappingSerializer
from datamapper.mapper.definition import MappingDefinition
from datamapper.mapper.mapping import FieldMappingPair, MappedField, MappingModel
from datamapper.mapper.transition import FieldAction
from datamapper.schema.models import NONE_FIELD, DocumentSet, Field
from datamapper.services.error_handler import ErrorHandler
from datamapper.services.notifications import NotificationChannel
from datamapper.transformer.registry import FieldActionCatalog

logger = logging.getLogger(__name__)


class MappingManagementService:
    """Select, create, edit, remove and save mappings."""

    def __init__(
        self,
        definition: MappingDefinition,
        documents: DocumentSet,
        catalog: FieldActionCatalog,
        error_handler: ErrorHandler,
        mapping_client: Optional[MappingServiceClient] = None,
        lock: Optional[threading.RLock] = None,
        is_ready: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            mapping_client: Target of remote saves; None keeps changes local
            lock: Session lock shared with the initialization service
            is_ready: Returns False while initialization is still running
        """
        self.definition = definition
        self.documents = documents
        self.catalog = catalog
        self.error_handler = error_handler
        self.mapping_client = mapping_client
        self.lock = lock or threading.RLock()
        self.is_ready = is_ready or (lambda: True)

        self.mapping_updated = NotificationChannel("mapping_updated")
        self.mapping_selection_required = NotificationChannel("mapping_selection_required")
        self.mapping_saved = NotificationChannel("mapping_saved")

        self._save_executor: Optional[ThreadPoolExecutor] = None
        self._pending_saves: List[Future] = []

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_field(self, field: Field) -> Optional[MappingModel]:
        """
        React to a user selecting a field in a document tree.

        Returns:
            The mapping that is active afterwards, or None

        Raises:
            AmbiguousMappingSelection: the field belongs to several mappings
                and none is active; nothing is changed
        """
        with self.lock:
            self._ensure_ready()

            if not field.is_terminal():
                doc = field.doc_def
                if doc is not None:
                    doc.populate_children(field)
                    doc.update_from_mappings(self.definition.get_mapped_fields_of_all_mappings())
                field.collapsed = not field.collapsed
                return None

            if not field.available_for_selection:
                self.error_handler.warn(
                    f"This field cannot be selected, {field.selection_exclusion_reason}: {field.display_name}"
                )
                return None

            mapping = self.definition.active_mapping
            if mapping is None:
                existing = self.definition.find_mappings_for_field(field)
                if len(existing) > 1:
                    logger.info(
                        f"Found {len(existing)} existing mappings for {field.path}, "
                        f"prompting for mapping selection"
                    )
                    self.mapping_selection_required.publish(field)
                    raise AmbiguousMappingSelection(field, existing)
                if len(existing) == 1:
                    self._select_mapping(existing[0])
                    return existing[0]
                return self._add_new_mapping(field)

            mapping.brand_new_mapping = False
            pair = mapping.get_current_field_mapping()
            if pair is None:
                pair = mapping.add_mapped_pair()
            last = pair.get_last_mapped_field(field.is_source())
            if last is None:
                last = pair.add_mapped_field(MappedField(), field.is_source())
            last.bind(field)
            pair.update_transition()
            self._select_mapping(mapping)
            self._schedule_save()
            return mapping

    def select_mapping(self, mapping: Optional[MappingModel]) -> None:
        with self.lock:
            self._ensure_ready()
            self._select_mapping(mapping)

    def deselect_mapping(self) -> None:
        with self.lock:
            self._ensure_ready()
            self._deselect_mapping()

    def _select_mapping(self, mapping: Optional[MappingModel]) -> None:
        if mapping is None:
            self._deselect_mapping()
            return
        logger.debug(f"Selecting active mapping {mapping.uuid}")
        self.definition.active_mapping = mapping
        self.documents.clear_selected_fields()
        for pair in mapping.field_mappings:
            self.documents.select_fields(pair.get_all_fields())
        self.definition.initialize_mapping_lookup_table(mapping)
        self._save_current_mapping()
        self.notify_mapping_updated()

    def _deselect_mapping(self) -> None:
        active = self.definition.active_mapping
        logger.debug(f"Deselecting active mapping {active.uuid if active else None}")
        self.definition.active_mapping = None
        self.documents.clear_selected_fields()
        self.notify_mapping_updated()

    # ------------------------------------------------------------------
    # Mapping lifecycle
    # ------------------------------------------------------------------

    def add_new_mapping(self, selected_field: Optional[Field] = None) -> MappingModel:
        with self.lock:
            self._ensure_ready()
            return self._add_new_mapping(selected_field)

    def _add_new_mapping(self, selected_field: Optional[Field]) -> MappingModel:
        logger.info("Creating new mapping")
        self._deselect_mapping()
        mapping = MappingModel(name=self.definition.name)
        mapping.brand_new_mapping = False
        if selected_field is not None:
            pair = mapping.get_first_field_mapping()
            pair.get_mapped_fields(selected_field.is_source())[0].bind(selected_field)
            pair.update_transition()
        self._select_mapping(mapping)
        self._schedule_save()
        return mapping

    def remove_mapping(self, mapping: MappingModel) -> None:
        with self.lock:
            self._ensure_ready()
            logger.info(f"Removing mapping {mapping.uuid}")
            was_saved = self.definition.remove_mapping(mapping)
            self._deselect_mapping()
            if was_saved:
                self._schedule_save()

    def save_current_mapping(self) -> bool:
        """
        Promote the active mapping into the persisted list.

        Returns:
            True if the mapping was added by this call
        """
        with self.lock:
            return self._save_current_mapping()

    def _save_current_mapping(self) -> bool:
        mapping = self.definition.active_mapping
        if mapping is None or self.definition.is_persisted(mapping):
            return False
        if not (mapping.has_bound_fields(True) and mapping.has_bound_fields(False)):
            return False
        logger.info(f"Saving current mapping {mapping.uuid}")
        self.definition.add_mapping(mapping)
        return True

    # ------------------------------------------------------------------
    # Pairs and endpoints
    # ------------------------------------------------------------------

    def add_mapped_pair(self) -> FieldMappingPair:
        with self.lock:
            mapping = self._active_mapping()
            pair = mapping.add_mapped_pair()
            self._commit()
            return pair

    def remove_mapped_pair(self, pair: FieldMappingPair) -> None:
        with self.lock:
            mapping = self._active_mapping()
            mapping.remove_mapped_pair(pair)
            if not mapping.field_mappings:
                was_saved = self.definition.remove_mapping(mapping)
                self._deselect_mapping()
                if was_saved:
                    self._schedule_save()
                return
            self._commit()

    def add_mapped_field(
        self,
        pair: FieldMappingPair,
        is_source: bool,
        field: Optional[Field] = None,
    ) -> MappedField:
        """Append an endpoint to one side of a pair; unbound when field is None."""
        with self.lock:
            self._ensure_ready()
            mapped_field = pair.add_mapped_field(MappedField(field=field or NONE_FIELD), is_source)
            pair.update_transition()
            self.definition.initialize_mapping_lookup_table(self._owner_of(pair))
            self._commit()
            return mapped_field

    def remove_mapped_field(self, pair: FieldMappingPair, mapped_field: MappedField, is_source: bool) -> None:
        with self.lock:
            self._ensure_ready()
            pair.remove_mapped_field(mapped_field, is_source)
            if mapped_field.is_bound():
                mapped_field.field.selected = False
            pair.update_transition()
            self._commit()

    def update_mapped_field(self, pair: FieldMappingPair) -> None:
        """Recompute a pair's transition after its endpoints were edited."""
        with self.lock:
            self._ensure_ready()
            pair.update_transition()
            self.definition.initialize_mapping_lookup_table(self._owner_of(pair))
            self._commit()

    def add_field_action(
        self,
        mapped_field: MappedField,
        action_name: str,
        argument_values: Optional[List[Any]] = None,
    ) -> FieldAction:
        """
        Raises:
            ActionNotApplicable: the action does not fit the bound field
        """
        with self.lock:
            self._ensure_ready()
            action = mapped_field.add_action(action_name, self.catalog, argument_values)
            self._commit()
            return action

    def remove_field_action(self, mapped_field: MappedField, action: FieldAction) -> None:
        with self.lock:
            self._ensure_ready()
            mapped_field.remove_action(action)
            self._commit()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def serialize_mappings_to_json(self) -> Dict[str, Any]:
        with self.lock:
            return MappingSerializer.serialize_mappings(self.definition, self.documents)

    def save_mapping_to_service(self) -> Optional[Future]:
        """Send the current mappings to the mapping service in the background."""
        with self.lock:
            return self._schedule_save()

    def wait_for_saves(self, timeout: Optional[float] = None) -> None:
        for future in list(self._pending_saves):
            future.result(timeout)

    def close(self) -> None:
        if self._save_executor is not None:
            self._save_executor.shutdown(wait=True)

    def _schedule_save(self) -> Optional[Future]:
        if self.mapping_client is None:
            return None
        # Snapshot under the lock; only the transport runs in the background
        payload = MappingSerializer.serialize_mappings(self.definition, self.documents)
        if self._save_executor is None:
            self._save_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="datamapper-save")
        self._pending_saves = [f for f in self._pending_saves if not f.done()]
        future = self._save_executor.submit(self._send, payload)
        self._pending_saves.append(future)
        return future

    def _send(self, payload: Dict[str, Any]) -> bool:
        try:
            self.mapping_client.save_mapping(payload)
        except SaveFailure as e:
            self.error_handler.error("Error occurred while saving mapping.", e)
            return False
        self.mapping_saved.publish(payload)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def notify_mapping_updated(self) -> None:
        self.mapping_updated.publish()

    def _commit(self) -> None:
        self._save_current_mapping()
        self.notify_mapping_updated()
        self._schedule_save()

    def _ensure_ready(self) -> None:
        if not self.is_ready():
            raise MappingSessionNotReady("Mapping session is still initializing")

    def _active_mapping(self) -> MappingModel:
        self._ensure_ready()
        mapping = self.definition.active_mapping
        if mapping is None:
            raise DataMapperError("No active mapping")
        return mapping

    def _owner_of(self, pair: FieldMappingPair) -> MappingModel:
        for mapping in self.definition.get_all_mappings(include_active=True):
            if pair in mapping.field_mappings:
                return mapping
        raise DataMapperError("Field mapping pair does not belong to any mapping")
