"""Field action service client."""
import logging
from typing import List

from datamapper.api.base_client import ServiceClient
from datamapper.transformer.registry import FieldActionCatalog, FieldActionConfig

logger = logging.getLogger(__name__)


class FieldActionClient(ServiceClient):
    """Fetches the available field actions."""

    def fetch_field_actions(self) -> List[FieldActionConfig]:
        body = self.get_json("fieldActions", unit="field actions")
        configs = FieldActionCatalog.parse_service_response(body or {})
        logger.debug(f"Fetched {len(configs)} field actions")
        return configs
