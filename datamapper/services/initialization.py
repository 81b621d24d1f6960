"""
Initialization Service - Loads documents, mapping files and field actions
concurrently, then reconciles them once.

Features:
- Three independent load sets joined by an explicit barrier
- Per-unit failure: an errored unit still counts as finished
- Classpath resolution before Java documents (skipped when configured)
- Mapping file discovery when no mapping files are configured
- Exactly one consistency pass per session
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, Dict, List, Optional

from datamapper.api.field_action_client import FieldActionClient
from datamapper.api.mapping_client import MappingServiceClient
from datamapper.errors import DataMapperError
from datamapper.exporter.mapping_serializer import MappingSerializer
from datamapper.introspection.document_inspector import DocumentInspector
from datamapper.mapper.definition import MappingDefinition
from datamapper.schema.models import DocumentDefinition, DocumentSet, DocumentType
from datamapper.services.error_handler import ErrorHandler
from datamapper.services.notifications import NotificationChannel
from datamapper.transformer.registry import FieldActionCatalog

logger = logging.getLogger(__name__)

INITIALIZATION_ERROR_PREFIX = "Data Mapper UI Initialization Error"


class LoadSet(str, Enum):
    DOCUMENTS = "documents"
    MAPPINGS = "mappings"
    FIELD_ACTIONS = "field_actions"


class InitializationStatus(str, Enum):
    LOADING = "LOADING"
    ERRORED = "ERRORED"  # a unit failed; loading of the others continues
    INITIALIZED = "INITIALIZED"


class LoadBarrier:
    """
    Join over the three load sets.

    Each set declares how many units it will report, then reports each one
    as done (loaded or errored). on_complete runs once, on the call that
    finishes the last outstanding unit of the last set. Sets that have not
    declared their count keep the gate closed.

    Not thread-safe on its own; callers hold the session lock.
    """

    def __init__(self, on_complete: Callable[[], None]):
        self._on_complete = on_complete
        self._outstanding: Dict[LoadSet, Optional[int]] = {s: None for s in LoadSet}
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def expect(self, load_set: LoadSet, count: int) -> None:
        if count < 0:
            raise ValueError(f"Negative unit count for {load_set.value}: {count}")
        self._outstanding[load_set] = count
        logger.debug(f"Expecting {count} units for {load_set.value}")
        self._check()

    def done(self, load_set: LoadSet) -> None:
        remaining = self._outstanding[load_set]
        if not remaining:
            logger.warning(f"Unexpected completion report for {load_set.value}")
            return
        self._outstanding[load_set] = remaining - 1
        logger.debug(f"{load_set.value}: {remaining - 1} units outstanding")
        self._check()

    def is_finished(self, load_set: LoadSet) -> bool:
        return self._outstanding[load_set] == 0

    def outstanding(self, load_set: LoadSet) -> Optional[int]:
        return self._outstanding[load_set]

    def _check(self) -> None:
        if self._fired:
            return
        if all(count == 0 for count in self._outstanding.values()):
            self._fired = True
            self._on_complete()


class InitializationService:
    """
    Drives session initialization.

    Usage:
    ```python
    service = InitializationService(documents, definition, catalog, inspector,
                                    mapping_client, field_action_client, errors)
    service.initialize()
    service.wait_until_initialized(timeout=60)
    ```
    """

    def __init__(
        self,
        documents: DocumentSet,
        definition: MappingDefinition,
        catalog: FieldActionCatalog,
        inspector: DocumentInspector,
        mapping_client: MappingServiceClient,
        field_action_client: FieldActionClient,
        error_handler: ErrorHandler,
        class_path: Optional[str] = None,
        mapping_files: Optional[List[str]] = None,
        mapping_file_filter: Optional[str] = "UI",
        load_mappings: bool = True,
        max_workers: int = 8,
        lock: Optional[threading.RLock] = None,
    ):
        """
        Args:
            documents: Documents to load; synthetic documents are never fetched
            definition: Mapping definition receiving the loaded mappings
            catalog: Field action catalog replaced by the fetched actions
            class_path: Pre-resolved Java classpath; skips the Maven step
            mapping_files: Mapping file names to load; empty means discover
            mapping_file_filter: Name filter used for discovery
            load_mappings: False when the definition was filled beforehand
            lock: Session lock shared with the management service
        """
        self.documents = documents
        self.definition = definition
        self.catalog = catalog
        self.inspector = inspector
        self.mapping_client = mapping_client
        self.field_action_client = field_action_client
        self.error_handler = error_handler
        self.class_path = class_path
        self.mapping_files = list(mapping_files or [])
        self.mapping_file_filter = mapping_file_filter
        self.load_mappings = load_mappings
        self.max_workers = max_workers
        self.lock = lock or threading.RLock()

        self.status = InitializationStatus.LOADING
        self.loading_status = "Loading."
        self.initialization_error_occurred = False

        self.system_initialized = NotificationChannel("system_initialized")
        self.initialization_status_changed = NotificationChannel("initialization_status_changed")

        self.barrier = LoadBarrier(self._on_all_loaded)
        self._initialized_event = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: List[Future] = []
        self._pending_mapping_files = 0
        self._started = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Start all loads. Returns once every fetch has been issued."""
        with self.lock:
            if self._started:
                logger.warning("Initialization already started")
                return
            self._started = True
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="datamapper-load"
            )
            self._update_status("Loading field actions, documents and mappings.")

            docs = self._documents_to_load()
            java_docs = [d for d in docs if d.document_type == DocumentType.JAVA]
            other_docs = [d for d in docs if d.document_type != DocumentType.JAVA]

            # Declare every set before any completion can arrive
            self.barrier.expect(LoadSet.FIELD_ACTIONS, 1)
            self.barrier.expect(LoadSet.DOCUMENTS, len(docs))
            self.barrier.expect(LoadSet.MAPPINGS, 1 if self.load_mappings else 0)
            if not self.load_mappings:
                logger.info("Mappings preloaded, skipping mapping file load")

            self._submit(self._load_field_actions)

            for doc in other_docs:
                self._submit(self._load_document, doc, None)
            if java_docs:
                if self.class_path is not None:
                    for doc in java_docs:
                        self._submit(self._load_document, doc, self.class_path)
                else:
                    self._submit(self._load_class_path, java_docs)

            if self.load_mappings:
                if self.mapping_files:
                    self._on_mapping_files_listed(self.mapping_files)
                else:
                    self._submit(self._discover_mapping_files)

    def is_initialized(self) -> bool:
        return self._initialized_event.is_set()

    def wait_until_initialized(self, timeout: Optional[float] = None) -> bool:
        return self._initialized_event.wait(timeout)

    def shutdown(self) -> None:
        """Wait for outstanding loads and surface unexpected worker errors."""
        if self._executor is None:
            return
        # Workers may schedule follow-up loads, so drain before shutting down
        while True:
            with self.lock:
                pending = [f for f in self._futures if not f.done()]
            if not pending:
                break
            wait(pending)
        self._executor.shutdown(wait=True)
        for future in self._futures:
            future.result()

    # ------------------------------------------------------------------
    # Workers (run without the lock) and their completion handlers
    # ------------------------------------------------------------------

    def _submit(self, fn, *args) -> None:
        self._futures.append(self._executor.submit(fn, *args))

    def _documents_to_load(self) -> List[DocumentDefinition]:
        return [
            d
            for d in self.documents.get_docs_without_property_doc(True)
            + self.documents.get_docs_without_property_doc(False)
            if not d.initialized
        ]

    def _load_field_actions(self) -> None:
        try:
            configs = self.field_action_client.fetch_field_actions()
            with self.lock:
                self.catalog.load(configs)
        except Exception as e:
            with self.lock:
                self._unit_failed(f"Could not load field actions: {e}", e)
        finally:
            with self.lock:
                self.barrier.done(LoadSet.FIELD_ACTIONS)

    def _load_class_path(self, java_docs: List[DocumentDefinition]) -> None:
        try:
            class_path = self.inspector.fetch_class_path()
        except Exception as e:
            with self.lock:
                self._unit_failed(f"Could not load classpath: {e}", e)
                for doc in java_docs:
                    doc.error_occurred = True
                    self.barrier.done(LoadSet.DOCUMENTS)
            return

        with self.lock:
            self.class_path = class_path
            for doc in java_docs:
                self._submit(self._load_document, doc, class_path)

    def _load_document(self, doc: DocumentDefinition, class_path: Optional[str]) -> None:
        try:
            self.inspector.inspect_document(doc, class_path)
        except Exception as e:
            with self.lock:
                doc.error_occurred = True
                self._unit_failed(f"Could not load document '{doc.identifier}': {e}", e)
                self.barrier.done(LoadSet.DOCUMENTS)
            return

        with self.lock:
            self._update_status(f"Loaded document {doc.fully_qualified_name}.")
            self.barrier.done(LoadSet.DOCUMENTS)

    def _discover_mapping_files(self) -> None:
        try:
            names = self.mapping_client.list_mapping_files(self.mapping_file_filter)
        except Exception as e:
            with self.lock:
                self._unit_failed(f"Could not load mapping file list: {e}", e)
                self.barrier.done(LoadSet.MAPPINGS)
            return

        with self.lock:
            self._on_mapping_files_listed(names)

    def _on_mapping_files_listed(self, names: List[str]) -> None:
        if not names:
            logger.info("No mapping files to load")
            self.barrier.done(LoadSet.MAPPINGS)
            return
        self._pending_mapping_files = len(names)
        for name in names:
            self._submit(self._load_mapping_file, name)

    def _load_mapping_file(self, name: str) -> None:
        try:
            body = self.mapping_client.fetch_mapping_file(name)
            with self.lock:
                rejected = MappingSerializer.deserialize_mapping_service_json(body, self.definition)
                for entry in rejected:
                    self.error_handler.warn(
                        f"Mapping file '{name}': field mapping #{entry.index} skipped: {entry.message}"
                    )
        except Exception as e:
            with self.lock:
                self._unit_failed(f"Could not load mapping file '{name}': {e}", e)
        finally:
            with self.lock:
                self._mapping_file_finished()

    def _mapping_file_finished(self) -> None:
        self._pending_mapping_files -= 1
        if self._pending_mapping_files <= 0:
            self.barrier.done(LoadSet.MAPPINGS)

    def _unit_failed(self, message: str, error: Exception) -> None:
        """A load unit failed; it still counts as finished for the barrier."""
        if not isinstance(error, DataMapperError):
            logger.exception(f"Unexpected error: {message}")
        self.handle_error(message, error)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def handle_error(self, message: str, error: Optional[BaseException] = None) -> None:
        """Record a load failure; loading of everything else continues."""
        self.initialization_error_occurred = True
        if self.status != InitializationStatus.INITIALIZED:
            self.status = InitializationStatus.ERRORED
        self.error_handler.error(message, error)
        self._update_status(f"{INITIALIZATION_ERROR_PREFIX}: {message}")

    def _update_status(self, message: str) -> None:
        self.loading_status = message
        logger.debug(f"Initialization status: {message}")
        self.initialization_status_changed.publish(self.status, message)

    def _on_all_loaded(self) -> None:
        logger.info("All documents, mappings and field actions finished loading")
        try:
            self.definition.run_consistency_pass(self.documents)
        except Exception as e:
            logger.exception("Consistency pass failed")
            self.handle_error(f"Could not reconcile mappings with documents: {e}", e)
        self.status = InitializationStatus.INITIALIZED
        self._update_status("Initialization complete.")
        self._initialized_event.set()
        self.system_initialized.publish()
