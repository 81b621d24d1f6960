"""Mapping validation service client."""
import logging
from typing import Any, Dict, List

from datamapper.api.base_client import ServiceClient

logger = logging.getLogger(__name__)


class ValidationClient(ServiceClient):
    """Sends serialized mappings to the validation endpoint."""

    def validate(self, mapping_json: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Validate an AtlasMapping document remotely.

        Returns:
            List of {"scope", "id", "message", "status"} dicts; empty when valid
        """
        body = self.post_json("mapping/validate", mapping_json, unit="validation")
        validations = ((body or {}).get("Validations") or {}).get("validation") or []
        logger.info(f"Validation service returned {len(validations)} findings")
        return validations
