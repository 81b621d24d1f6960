"""
Document Inspector - Fetches document schemas from the inspection services.

Features:
- Maven classpath resolution for Java documents
- Java class inspection honoring the configured field filters
- XML and JSON inspection from inline document contents
- Per-document failure: one failed document never touches another
"""

import logging
from typing import Any, Dict, Optional

from config import AppConfig
from datamapper.api.base_client import ServiceClient
from datamapper.errors import FetchFailure
from datamapper.schema.models import DocumentDefinition, DocumentType

from .inspection_parser import InspectionParser

logger = logging.getLogger(__name__)


class DocumentInspector:
    """
    Loads document field trees from the Java, XML and JSON inspection services.

    Usage:
    ```python
    inspector = DocumentInspector(app_config)
    classpath = inspector.fetch_class_path()
    inspector.inspect_document(doc, classpath)
    print(f"{doc.identifier}: {len(doc.get_all_fields())} fields")
    ```
    """

    def __init__(self, config: AppConfig, session=None):
        self.config = config
        debug = config.debug
        self.java_client = ServiceClient(
            config.services.java_inspection,
            timeout=config.request_timeout,
            debug_json=debug.document_json or debug.class_path_json,
            session=session,
        )
        self.xml_client = ServiceClient(
            config.services.xml_inspection,
            timeout=config.request_timeout,
            debug_json=debug.document_json,
            session=session,
        )
        self.json_client = ServiceClient(
            config.services.json_inspection,
            timeout=config.request_timeout,
            debug_json=debug.document_json,
            session=session,
        )
        self.parser = InspectionParser(debug_parsing=debug.document_parsing)

    def fetch_class_path(self) -> str:
        """
        Resolve the Java classpath from the configured pom.

        Raises:
            FetchFailure: if the Maven service fails or times out
        """
        payload = {
            "MavenClasspathRequest": {
                "jsonType": "io.atlasmap.java.v2.MavenClasspathRequest",
                "pomXmlData": self.config.pom_payload or "",
                "executeTimeout": self.config.class_path_fetch_timeout_ms,
            }
        }
        body = self.java_client.post_json(
            "mavenclasspath",
            payload,
            timeout=self.config.class_path_fetch_timeout,
            unit="classpath",
        )
        response = (body or {}).get("MavenClasspathResponse") or {}
        if response.get("errorMessage"):
            raise FetchFailure(response["errorMessage"], unit="classpath")
        classpath = response.get("classpath") or ""
        logger.info(f"Resolved classpath ({len(classpath.split(':')) if classpath else 0} entries)")
        return classpath

    def inspect_document(self, doc: DocumentDefinition, class_path: Optional[str] = None) -> DocumentDefinition:
        """
        Fetch and parse one document, marking it initialized.

        Raises:
            FetchFailure: on transport or response errors; the document is
                          left uninitialized for the caller to flag
        """
        if doc.document_type == DocumentType.JAVA:
            body = self.java_client.post_json(
                "class", self._class_inspection_request(doc, class_path), unit=doc.identifier
            )
            self.parser.parse_java_document(body, doc)
        elif doc.document_type == DocumentType.XML:
            body = self.xml_client.post_json(
                "inspect",
                {
                    "XmlInspectionRequest": {
                        "jsonType": "io.atlasmap.xml.v2.XmlInspectionRequest",
                        "type": doc.inspection_type,
                        "xmlData": doc.document_contents or "",
                    }
                },
                unit=doc.identifier,
            )
            self.parser.parse_xml_document(body, doc)
        elif doc.document_type == DocumentType.JSON:
            body = self.json_client.post_json(
                "inspect",
                {
                    "JsonInspectionRequest": {
                        "jsonType": "io.atlasmap.json.v2.JsonInspectionRequest",
                        "type": doc.inspection_type,
                        "jsonData": doc.document_contents or "",
                    }
                },
                unit=doc.identifier,
            )
            self.parser.parse_json_document(body, doc)
        else:
            logger.debug(f"{doc.identifier} needs no inspection")

        doc.initialized = True
        logger.info(f"Loaded document {doc.identifier} ({len(doc.get_all_fields())} fields)")
        return doc

    def _class_inspection_request(self, doc: DocumentDefinition, class_path: Optional[str]) -> Dict[str, Any]:
        filters = self.config.filters
        return {
            "ClassInspectionRequest": {
                "jsonType": "io.atlasmap.java.v2.ClassInspectionRequest",
                "classpath": class_path,
                "className": doc.identifier,
                "disablePrivateOnlyFields": filters.disable_private_only_fields,
                "disableProtectedOnlyFields": filters.disable_protected_only_fields,
                "disablePublicOnlyFields": filters.disable_public_only_fields,
                "disablePublicGetterSetterFields": filters.disable_public_getter_setter_fields,
                "fieldNameBlacklist": {"string": list(filters.field_name_blacklist)},
                "classNameBlacklist": {"string": list(filters.class_name_blacklist)},
            }
        }
