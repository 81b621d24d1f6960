"""Configuração da aplicação."""
import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_list(name: str) -> List[str]:
    """Lê lista separada por vírgulas de uma variável de ambiente."""
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ServiceUrls:
    """Base URLs of the backend services."""

    java_inspection: str = "http://localhost:8585/v2/atlas/java/"
    xml_inspection: str = "http://localhost:8585/v2/atlas/xml/"
    json_inspection: str = "http://localhost:8585/v2/atlas/json/"
    mapping: str = "http://localhost:8585/v2/atlas/"
    validation: str = "http://localhost:8585/v2/atlas/"
    field_action: str = "http://localhost:8585/v2/atlas/"

    @classmethod
    def from_env(cls) -> "ServiceUrls":
        """Carrega URLs de variáveis de ambiente."""
        defaults = cls()
        return cls(
            java_inspection=os.getenv("DATAMAPPER_JAVA_INSPECTION_URL", defaults.java_inspection),
            xml_inspection=os.getenv("DATAMAPPER_XML_INSPECTION_URL", defaults.xml_inspection),
            json_inspection=os.getenv("DATAMAPPER_JSON_INSPECTION_URL", defaults.json_inspection),
            mapping=os.getenv("DATAMAPPER_MAPPING_URL", defaults.mapping),
            validation=os.getenv("DATAMAPPER_VALIDATION_URL", defaults.validation),
            field_action=os.getenv("DATAMAPPER_FIELD_ACTION_URL", defaults.field_action),
        )


@dataclass
class InspectionFilters:
    """Field filtering flags forwarded to the inspection service."""

    field_name_blacklist: List[str] = field(default_factory=list)
    class_name_blacklist: List[str] = field(default_factory=list)
    disable_private_only_fields: bool = False
    disable_protected_only_fields: bool = False
    disable_public_only_fields: bool = False
    disable_public_getter_setter_fields: bool = False

    @classmethod
    def from_env(cls) -> "InspectionFilters":
        return cls(
            field_name_blacklist=_env_list("DATAMAPPER_FIELD_NAME_BLACKLIST"),
            class_name_blacklist=_env_list("DATAMAPPER_CLASS_NAME_BLACKLIST"),
            disable_private_only_fields=_env_flag("DATAMAPPER_DISABLE_PRIVATE_ONLY_FIELDS"),
            disable_protected_only_fields=_env_flag("DATAMAPPER_DISABLE_PROTECTED_ONLY_FIELDS"),
            disable_public_only_fields=_env_flag("DATAMAPPER_DISABLE_PUBLIC_ONLY_FIELDS"),
            disable_public_getter_setter_fields=_env_flag(
                "DATAMAPPER_DISABLE_PUBLIC_GETTER_SETTER_FIELDS"
            ),
        )


@dataclass
class DebugToggles:
    """Per-subsystem JSON dump switches (logged at DEBUG level)."""

    document_json: bool = False
    document_parsing: bool = False
    mapping_json: bool = True
    class_path_json: bool = False
    validation_json: bool = False
    field_action_json: bool = True

    @classmethod
    def from_env(cls) -> "DebugToggles":
        return cls(
            document_json=_env_flag("DATAMAPPER_DEBUG_DOCUMENT_JSON"),
            document_parsing=_env_flag("DATAMAPPER_DEBUG_DOCUMENT_PARSING"),
            mapping_json=_env_flag("DATAMAPPER_DEBUG_MAPPING_JSON", True),
            class_path_json=_env_flag("DATAMAPPER_DEBUG_CLASS_PATH_JSON"),
            validation_json=_env_flag("DATAMAPPER_DEBUG_VALIDATION_JSON"),
            field_action_json=_env_flag("DATAMAPPER_DEBUG_FIELD_ACTION_JSON", True),
        )


@dataclass
class AppConfig:
    """Configuração da aplicação."""

    services: ServiceUrls = None
    filters: InspectionFilters = None
    debug: DebugToggles = None
    class_path_fetch_timeout_ms: int = 30000
    request_timeout: int = 60
    class_path: Optional[str] = None  # se informado, a resolução Maven é pulada
    pom_payload: Optional[str] = None
    mapping_files: List[str] = field(default_factory=list)
    mapping_file_filter: str = "UI"
    output_dir: str = "./output"
    max_workers: int = 8

    def __post_init__(self):
        """Inicializa valores padrão."""
        if self.services is None:
            self.services = ServiceUrls.from_env()
        if self.filters is None:
            self.filters = InspectionFilters.from_env()
        if self.debug is None:
            self.debug = DebugToggles.from_env()

    @property
    def class_path_fetch_timeout(self) -> float:
        """Classpath fetch timeout in seconds."""
        return self.class_path_fetch_timeout_ms / 1000.0

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Carrega config de variáveis de ambiente."""
        return cls(
            services=ServiceUrls.from_env(),
            filters=InspectionFilters.from_env(),
            debug=DebugToggles.from_env(),
            class_path_fetch_timeout_ms=int(os.getenv("DATAMAPPER_CLASS_PATH_TIMEOUT_MS", "30000")),
            request_timeout=int(os.getenv("DATAMAPPER_REQUEST_TIMEOUT", "60")),
            class_path=os.getenv("DATAMAPPER_CLASS_PATH") or None,
            mapping_files=_env_list("DATAMAPPER_MAPPING_FILES"),
            mapping_file_filter=os.getenv("DATAMAPPER_MAPPING_FILTER", "UI"),
            output_dir=os.getenv("DATAMAPPER_OUTPUT_DIR", "./output"),
            max_workers=int(os.getenv("DATAMAPPER_MAX_WORKERS", "8")),
        )


# Instância global
app_config = AppConfig()
