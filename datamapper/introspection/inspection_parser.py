"""
Inspection Parser - Turns inspection service responses into document field trees.

Supports:
- Java class inspection (JavaClass with nested javaFields)
- XML schema/instance inspection, including namespaces
- JSON schema/instance inspection
- Enum constants on Java enum fields
- Complex fields returned without children (expanded later on demand)
"""

import logging
from typing import Any, Dict, List, Optional

from datamapper.errors import FetchFailure
from datamapper.schema.models import (
    COMPLEX_TYPE,
    DocumentDefinition,
    EnumValue,
    Field,
    NamespaceModel,
)

logger = logging.getLogger(__name__)


class InspectionParser:
    """Populates DocumentDefinitions from inspection responses."""

    def __init__(self, debug_parsing: bool = False):
        self.debug_parsing = debug_parsing

    # ------------------------------------------------------------------
    # Java
    # ------------------------------------------------------------------

    def parse_java_document(self, body: Dict[str, Any], doc: DocumentDefinition) -> int:
        """
        Fill a Java document from a class inspection response.

        Returns:
            Number of fields added (all levels)

        Raises:
            FetchFailure: if the response carries no class or an error message,
                          or its field tree is malformed
        """
        java_class = body.get("JavaClass") if isinstance(body, dict) else None
        if not isinstance(java_class, dict):
            raise FetchFailure(f"No JavaClass in inspection response for {doc.identifier}", unit=doc.identifier)
        if java_class.get("status") == "NOT_FOUND":
            raise FetchFailure(f"Class {doc.identifier} not found on classpath", unit=doc.identifier)

        doc.uri = java_class.get("uri") or doc.uri
        count = 0
        try:
            for node in self._children(java_class, "javaFields", "javaField"):
                count += self._add_java_field(node, doc, None)
        except (AttributeError, TypeError, ValueError) as e:
            raise self._malformed(doc, e) from e
        logger.debug(f"Parsed {count} Java fields for {doc.identifier}")
        return count

    def _add_java_field(self, node: Dict[str, Any], doc: DocumentDefinition, parent: Optional[Field]) -> int:
        if node.get("status") in ("EXCLUDED", "NOT_FOUND", "BLACK_LIST"):
            if self.debug_parsing:
                logger.debug(f"Skipping {node.get('status')} field {node.get('path')}")
            return 0

        children = self._children(node, "javaFields", "javaField")
        field = Field(
            name=node.get("name") or "",
            path=self._path_of(node, doc, parent),
            type=COMPLEX_TYPE if children or node.get("type") == COMPLEX_TYPE else (node.get("type") or "STRING"),
            class_name=node.get("className"),
            status=node.get("status") or "SUPPORTED",
            modifiers=list((node.get("modifiers") or {}).get("modifier") or []),
            get_method=node.get("getMethod"),
            set_method=node.get("setMethod"),
            is_primitive=bool(node.get("primitive", False)),
            is_array=bool(node.get("array", False)) or node.get("collectionType") in ("ARRAY", "LIST"),
            synthetic=bool(node.get("synthetic", False)),
            enumeration=bool(node.get("enumeration", False)),
        )
        for i, enum_node in enumerate(self._children(node, "javaEnumFields", "javaEnumField")):
            field.enum_values.append(EnumValue(name=enum_node.get("name", ""), ordinal=enum_node.get("ordinal", i)))

        doc.add_field(field, parent)
        count = 1
        for child in children:
            count += self._add_java_field(child, doc, field)
        return count

    # ------------------------------------------------------------------
    # XML
    # ------------------------------------------------------------------

    def parse_xml_document(self, body: Dict[str, Any], doc: DocumentDefinition) -> int:
        response = body.get("XmlInspectionResponse") if isinstance(body, dict) else None
        if not isinstance(response, dict):
            raise FetchFailure(f"No XmlInspectionResponse for {doc.identifier}", unit=doc.identifier)
        if response.get("errorMessage"):
            raise FetchFailure(response["errorMessage"], unit=doc.identifier)

        xml_doc = response.get("xmlDocument") or {}
        count = 0
        try:
            for ns in self._children(xml_doc, "xmlNamespaces", "xmlNamespace"):
                doc.add_namespace(
                    NamespaceModel(
                        alias=ns.get("alias") or "",
                        uri=ns.get("uri"),
                        location=ns.get("locationUri"),
                        target_namespace=bool(ns.get("targetNamespace", False)),
                    )
                )
            for node in self._children(xml_doc, "fields", "field"):
                count += self._add_tree_field(node, doc, None, "xmlFields", "xmlField")
        except (AttributeError, TypeError, ValueError) as e:
            raise self._malformed(doc, e) from e
        logger.debug(f"Parsed {count} XML fields and {len(doc.namespaces)} namespaces for {doc.identifier}")
        return count

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def parse_json_document(self, body: Dict[str, Any], doc: DocumentDefinition) -> int:
        response = body.get("JsonInspectionResponse") if isinstance(body, dict) else None
        if not isinstance(response, dict):
            raise FetchFailure(f"No JsonInspectionResponse for {doc.identifier}", unit=doc.identifier)
        if response.get("errorMessage"):
            raise FetchFailure(response["errorMessage"], unit=doc.identifier)

        json_doc = response.get("jsonDocument") or {}
        count = 0
        try:
            for node in self._children(json_doc, "fields", "field"):
                count += self._add_tree_field(node, doc, None, "jsonFields", "jsonField")
        except (AttributeError, TypeError, ValueError) as e:
            raise self._malformed(doc, e) from e
        logger.debug(f"Parsed {count} JSON fields for {doc.identifier}")
        return count

    def _add_tree_field(
        self,
        node: Dict[str, Any],
        doc: DocumentDefinition,
        parent: Optional[Field],
        container_key: str,
        item_key: str,
    ) -> int:
        children = self._children(node, container_key, item_key)
        name = node.get("name") or ""
        alias = None
        if ":" in name:
            alias, name = name.split(":", 1)

        field = Field(
            name=name,
            path=self._path_of(node, doc, parent),
            type=COMPLEX_TYPE if children or node.get("type") == COMPLEX_TYPE else (node.get("type") or "STRING"),
            status=node.get("status") or "SUPPORTED",
            is_attribute=bool(node.get("attribute", False)),
            is_array=node.get("collectionType") in ("ARRAY", "LIST"),
            namespace_alias=alias,
        )
        doc.add_field(field, parent)
        count = 1
        for child in children:
            count += self._add_tree_field(child, doc, field, container_key, item_key)
        return count

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _malformed(doc: DocumentDefinition, error: Exception) -> FetchFailure:
        return FetchFailure(f"Malformed inspection response for {doc.identifier}: {error}", unit=doc.identifier)

    @staticmethod
    def _children(node: Dict[str, Any], container_key: str, item_key: str) -> List[Dict[str, Any]]:
        return (node.get(container_key) or {}).get(item_key) or []

    @staticmethod
    def _path_of(node: Dict[str, Any], doc: DocumentDefinition, parent: Optional[Field]) -> str:
        if node.get("path"):
            return node["path"]
        name = node.get("name") or ""
        if parent is None:
            return name
        return f"{parent.path}{doc.path_separator}{name}"
