"""Mapping service client: mapping file discovery, loading and saving."""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from datamapper.api.base_client import ServiceClient
from datamapper.errors import SaveFailure

logger = logging.getLogger(__name__)


class MappingServiceClient(ServiceClient):
    """Client for the mapping storage endpoints."""

    def list_mapping_files(self, name_filter: Optional[str] = "UI") -> List[str]:
        """
        Names of the stored mapping files.

        Response shape: {"StringMap": {"stringMapEntry": [{"name": ..., "value": ...}]}}
        """
        params = {"filter": name_filter} if name_filter else None
        body = self.get_json("mappings", params=params, unit="mapping file list")
        entries = ((body or {}).get("StringMap") or {}).get("stringMapEntry") or []
        names = [e["name"] for e in entries if e.get("name")]
        logger.info(f"Found {len(names)} mapping files (filter={name_filter!r})")
        return names

    def fetch_mapping_file(self, name: str) -> Dict[str, Any]:
        return self.get_json(f"mapping/{quote(name, safe='')}", unit=name)

    def save_mapping(self, mapping_json: Dict[str, Any]) -> Dict[str, Any]:
        """
        Store a serialized AtlasMapping.

        Raises:
            SaveFailure: if the service is unreachable or rejects the mapping
        """
        body = self.put_json("mapping", mapping_json, error_class=SaveFailure)
        logger.info("Mapping saved to mapping service")
        return body
