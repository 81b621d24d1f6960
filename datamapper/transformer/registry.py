"""Field action catalog."""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from datamapper.errors import ActionNotApplicable, FetchFailure
from datamapper.schema.models import NONE_FIELD, NUMERIC_TYPES, STRING_TYPES, Field

logger = logging.getLogger(__name__)


def to_wire_key(argument_name: str) -> str:
    """'Start Index' -> 'startIndex'."""
    words = re.split(r"[\s_\-]+", argument_name.strip())
    words = [w for w in words if w]
    if not words:
        return ""
    return words[0][0].lower() + words[0][1:] + "".join(w[0].upper() + w[1:] for w in words[1:])


@dataclass
class FieldActionConfig:
    """One available transformation action."""

    identifier: str
    name: str = ""
    for_string: bool = True
    argument_names: List[str] = field(default_factory=list)
    source_type: Optional[str] = None
    target_type: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            self.name = self.identifier.capitalize()

    @property
    def wire_name(self) -> str:
        """Action name as it appears in the mapping JSON jsonType."""
        return self.name.replace(" ", "")

    @property
    def argument_keys(self) -> List[str]:
        return [to_wire_key(name) for name in self.argument_names]

    def applies_to_field(self, field: Field) -> bool:
        """Unbound endpoints accept any action; bound ones must match string/numeric."""
        if field is None or field is NONE_FIELD:
            return True
        if self.for_string:
            return field.type in STRING_TYPES
        return field.type in NUMERIC_TYPES


class FieldActionCatalog:
    """Registry of available field actions."""

    DEFAULT_CONFIGS = [
        FieldActionConfig("lowercase", "Lowercase"),
        FieldActionConfig("uppercase", "Uppercase"),
        FieldActionConfig("substring", "Substring", argument_names=["Start Index", "Length"]),
        FieldActionConfig("ceiling", "Ceiling", for_string=False),
        FieldActionConfig("floor", "Floor", for_string=False),
        FieldActionConfig("min", "Min", for_string=False, argument_names=["Compare To"]),
        FieldActionConfig("max", "Max", for_string=False, argument_names=["Compare To"]),
    ]

    def __init__(self, configs: Optional[List[FieldActionConfig]] = None):
        """Initialize catalog, with the built-in actions unless configs are given."""
        self.configs: Dict[str, FieldActionConfig] = {}
        self.loaded = False
        for config in configs if configs is not None else self.DEFAULT_CONFIGS:
            self.register(config)

    def register(self, config: FieldActionConfig) -> None:
        self.configs[config.identifier.lower()] = config

    def load(self, configs: List[FieldActionConfig]) -> None:
        """Replace the catalog with the configs fetched from the field action service."""
        self.configs = {}
        for config in configs:
            self.register(config)
        self.loaded = True
        logger.info(f"Field action catalog loaded with {len(self.configs)} actions")

    def get(self, name: str) -> Optional[FieldActionConfig]:
        """Look up an action by identifier, display name or wire name."""
        if not name:
            return None
        key = name.lower()
        if key in self.configs:
            return self.configs[key]
        for config in self.configs.values():
            if config.name.lower() == key or config.wire_name.lower() == key:
                return config
        return None

    def all(self) -> List[FieldActionConfig]:
        return list(self.configs.values())

    def applicable_configs(self, field: Field) -> List[FieldActionConfig]:
        return [c for c in self.configs.values() if c.applies_to_field(field)]

    def check_applicable(self, name: str, field: Field) -> FieldActionConfig:
        """
        Validate that an action can be attached to a field.

        Raises:
            ActionNotApplicable: unknown action, or action incompatible with the field type
        """
        config = self.get(name)
        if config is None:
            raise ActionNotApplicable(name, getattr(field, "type", None))
        if not config.applies_to_field(field):
            raise ActionNotApplicable(config.name, field.type)
        return config

    @staticmethod
    def parse_service_response(body: Dict[str, Any]) -> List[FieldActionConfig]:
        """
        Parse the field action service response.

        Expected shape:
            {"ActionDetails": {"actionDetail": [
                {"name": "Uppercase", "sourceType": "STRING", "targetType": "STRING",
                 "parameters": {"parameter": [{"name": "Start Index"}]}}
            ]}}
        """
        try:
            return FieldActionCatalog._parse_action_details(body)
        except (AttributeError, TypeError, ValueError) as e:
            raise FetchFailure(f"Malformed field action response: {e}", unit="field actions") from e

    @staticmethod
    def _parse_action_details(body: Dict[str, Any]) -> List[FieldActionConfig]:
        details = (body.get("ActionDetails") or {}).get("actionDetail") or []
        configs = []
        for detail in details:
            name = detail.get("name")
            if not name:
                logger.warning(f"Skipping field action without a name: {detail}")
                continue
            source_type = detail.get("sourceType")
            parameters = (detail.get("parameters") or {}).get("parameter") or []
            configs.append(
                FieldActionConfig(
                    identifier=name.lower(),
                    name=name,
                    for_string=source_type is None or source_type in STRING_TYPES or source_type == "ALL",
                    argument_names=[p.get("name", "") for p in parameters],
                    source_type=source_type,
                    target_type=detail.get("targetType"),
                )
            )
        return configs
