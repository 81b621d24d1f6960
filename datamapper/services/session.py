"""Wires one mapping session from configuration."""
import threading
from typing import Optional

import requests

from config import AppConfig
from datamapper.api.field_action_client import FieldActionClient
from datamapper.api.mapping_client import MappingServiceClient
from datamapper.api.validation_client import ValidationClient
from datamapper.introspection.document_inspector import DocumentInspector
from datamapper.mapper.definition import MappingDefinition
from datamapper.schema.models import DocumentSet
from datamapper.services.error_handler import ErrorHandler
from datamapper.services.initialization import InitializationService
from datamapper.services.management import MappingManagementService
from datamapper.transformer.registry import FieldActionCatalog
from datamapper.validator.mapping_validator import MappingValidator


class MappingSession:
    """
    The collaborators of one session, sharing one lock and one HTTP session.

    Each service receives only the pieces of configuration it uses.
    """

    def __init__(
        self,
        config: AppConfig,
        documents: Optional[DocumentSet] = None,
        definition: Optional[MappingDefinition] = None,
        http_session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.documents = documents or DocumentSet()
        self.definition = definition or MappingDefinition()
        self.catalog = FieldActionCatalog()
        self.error_handler = ErrorHandler()
        self.lock = threading.RLock()

        http = http_session or requests.Session()
        services, debug, timeout = config.services, config.debug, config.request_timeout
        self.mapping_client = MappingServiceClient(
            services.mapping, timeout=timeout, debug_json=debug.mapping_json, session=http
        )
        self.field_action_client = FieldActionClient(
            services.field_action, timeout=timeout, debug_json=debug.field_action_json, session=http
        )
        self.validation_client = ValidationClient(
            services.validation, timeout=timeout, debug_json=debug.validation_json, session=http
        )
        self.inspector = DocumentInspector(config, session=http)

        self.initialization = InitializationService(
            self.documents,
            self.definition,
            self.catalog,
            self.inspector,
            self.mapping_client,
            self.field_action_client,
            self.error_handler,
            class_path=config.class_path,
            mapping_files=config.mapping_files,
            mapping_file_filter=config.mapping_file_filter,
            load_mappings=definition is None,
            max_workers=config.max_workers,
            lock=self.lock,
        )
        self.management = MappingManagementService(
            self.definition,
            self.documents,
            self.catalog,
            self.error_handler,
            mapping_client=self.mapping_client,
            lock=self.lock,
            is_ready=self.initialization.is_initialized,
        )
        self.validator = MappingValidator(self.catalog, self.validation_client)

    def start(self, timeout: Optional[float] = None) -> bool:
        """Run initialization and wait for it; False on timeout."""
        self.initialization.initialize()
        return self.initialization.wait_until_initialized(timeout)

    def close(self) -> None:
        self.initialization.shutdown()
        self.management.close()
