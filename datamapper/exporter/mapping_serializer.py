"""
Mapping Serializer - converts a MappingDefinition to and from the mapping
service JSON format (AtlasMapping).

Supports:
- Map / Separate / Combine / Lookup field mappings
- Java, XML, JSON, property and constant fields
- Ordered field action chains (MapAction index first)
- Lookup tables, loaded before the mappings that reference them
- Placeholder fields for paths that cannot be resolved yet
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from datamapper.errors import UnknownMappingType
from datamapper.mapper.definition import MappingDefinition
from datamapper.mapper.lookup_table import LookupTable, LookupTableEntry
from datamapper.mapper.mapping import (
    FieldMappingPair,
    MappedField,
    MappingModel,
    ParsedFieldReference,
)
from datamapper.mapper.transition import (
    DELIMITED_MODES,
    DEFAULT_DELIMITER,
    FieldAction,
    TransitionDelimiter,
    TransitionMode,
)
from datamapper.schema.models import DocumentSet, DocumentType, Field

logger = logging.getLogger(__name__)

MAPPING_SERVICES_PACKAGE_PREFIX = "io.atlasmap.v2"
JAVA_SERVICES_PACKAGE_PREFIX = "io.atlasmap.java.v2"
XML_SERVICES_PACKAGE_PREFIX = "io.atlasmap.xml.v2"
JSON_SERVICES_PACKAGE_PREFIX = "io.atlasmap.json.v2"

ATLAS_MAPPING_TYPE = f"{MAPPING_SERVICES_PACKAGE_PREFIX}.AtlasMapping"
MAPPED_FIELD_TYPE = f"{MAPPING_SERVICES_PACKAGE_PREFIX}.MappedField"
MAP_ACTION_TYPE = f"{MAPPING_SERVICES_PACKAGE_PREFIX}.MapAction"

MAPPING_TYPES = {
    TransitionMode.MAP: f"{MAPPING_SERVICES_PACKAGE_PREFIX}.MapFieldMapping",
    TransitionMode.SEPARATE: f"{MAPPING_SERVICES_PACKAGE_PREFIX}.SeparateFieldMapping",
    TransitionMode.COMBINE: f"{MAPPING_SERVICES_PACKAGE_PREFIX}.CombineFieldMapping",
    TransitionMode.LOOKUPTABLE: f"{MAPPING_SERVICES_PACKAGE_PREFIX}.LookupFieldMapping",
}
MODES_BY_MAPPING_TYPE = {v: k for k, v in MAPPING_TYPES.items()}

FIELD_TYPES = {
    DocumentType.JAVA: f"{JAVA_SERVICES_PACKAGE_PREFIX}.JavaField",
    DocumentType.XML: f"{XML_SERVICES_PACKAGE_PREFIX}.XmlField",
    DocumentType.JSON: f"{JSON_SERVICES_PACKAGE_PREFIX}.JsonField",
    DocumentType.PROPERTY: f"{MAPPING_SERVICES_PACKAGE_PREFIX}.PropertyField",
    DocumentType.CONSTANT: f"{MAPPING_SERVICES_PACKAGE_PREFIX}.ConstantField",
}
DOCUMENT_TYPES_BY_FIELD_TYPE = {v: k for k, v in FIELD_TYPES.items()}


@dataclass
class DeserializationError:
    """A fieldMapping entry that could not be deserialized."""

    index: int
    message: str
    json_type: Optional[str] = None


class MappingSerializer:
    """Bidirectional transform between MappingDefinition and AtlasMapping JSON."""

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def serialize_mappings(
        definition: MappingDefinition,
        documents: Optional[DocumentSet] = None,
    ) -> Dict[str, Any]:
        """
        Serialize every persisted mapping of a definition.

        Args:
            definition: Mapping definition to serialize
            documents: Session documents, used for sourceUri/targetUri when
                       the definition did not come from a mapping file

        Returns:
            {"AtlasMapping": {...}} ready for the mapping service
        """
        field_mappings = []
        for mapping in definition.get_all_mappings():
            for pair in mapping.field_mappings:
                field_mappings.append(MappingSerializer.serialize_field_mapping(pair))

        source_uri, target_uri = definition.source_uri, definition.target_uri
        if documents is not None:
            source_uri = source_uri or MappingSerializer._first_uri(documents, True)
            target_uri = target_uri or MappingSerializer._first_uri(documents, False)

        body: Dict[str, Any] = {
            "jsonType": ATLAS_MAPPING_TYPE,
            "fieldMappings": {"fieldMapping": field_mappings},
            "name": definition.name,
            "sourceUri": source_uri,
            "targetUri": target_uri,
            "lookupTables": {
                "lookupTable": [
                    MappingSerializer.serialize_lookup_table(t) for t in definition.get_tables()
                ]
            },
        }
        if definition.namespaces:
            body["namespaces"] = {
                "namespace": [{"alias": a, "uri": u} for a, u in definition.namespaces.items()]
            }
        return {"AtlasMapping": body}

    @staticmethod
    def _first_uri(documents: DocumentSet, is_source: bool) -> Optional[str]:
        for doc in documents.get_docs_without_property_doc(is_source):
            if doc.uri:
                return doc.uri
        return None

    @staticmethod
    def serialize_field_mapping(pair: FieldMappingPair) -> Dict[str, Any]:
        mode = pair.transition.mode
        node: Dict[str, Any] = {"jsonType": MAPPING_TYPES[mode]}

        if mode == TransitionMode.COMBINE:
            node["inputFields"] = {
                "mappedField": [
                    MappingSerializer.serialize_mapped_field(mf, i, True)
                    for i, mf in enumerate(pair.input_fields)
                ]
            }
        else:
            node["inputField"] = MappingSerializer.serialize_mapped_field(pair.input_fields[0], 0, False)

        if mode == TransitionMode.SEPARATE:
            node["outputFields"] = {
                "mappedField": [
                    MappingSerializer.serialize_mapped_field(mf, i, True)
                    for i, mf in enumerate(pair.output_fields)
                ]
            }
        else:
            node["outputField"] = MappingSerializer.serialize_mapped_field(pair.output_fields[0], 0, False)

        if mode in DELIMITED_MODES:
            node["strategy"] = (pair.transition.delimiter or DEFAULT_DELIMITER).value
        if mode == TransitionMode.LOOKUPTABLE:
            node["lookupTableName"] = pair.transition.lookup_table_name
        return node

    @staticmethod
    def serialize_mapped_field(mapped_field: MappedField, position: int, with_index: bool) -> Dict[str, Any]:
        actions = []
        if with_index:
            index = mapped_field.index if mapped_field.index is not None else position
            actions.append({"jsonType": MAP_ACTION_TYPE, "index": index})
        for action in mapped_field.actions:
            node = {"jsonType": f"{MAPPING_SERVICES_PACKAGE_PREFIX}.{action.name}"}
            node.update(action.arguments)
            actions.append(node)

        return {
            "jsonType": MAPPED_FIELD_TYPE,
            "field": MappingSerializer.serialize_field(mapped_field),
            "fieldActions": {"fieldAction": actions} if actions else None,
        }

    @staticmethod
    def serialize_field(mapped_field: MappedField) -> Optional[Dict[str, Any]]:
        if not mapped_field.is_bound():
            return None

        field = mapped_field.field
        if mapped_field.parsed_reference is not None:
            doc_type = mapped_field.parsed_reference.document_type
        elif field.doc_def is not None:
            doc_type = field.doc_def.document_type
        else:
            doc_type = DocumentType.JAVA

        node: Dict[str, Any] = {"jsonType": FIELD_TYPES[doc_type]}
        if doc_type == DocumentType.JAVA:
            node["status"] = field.status
            node["modifiers"] = {"modifier": list(field.modifiers)}
            node["name"] = field.name
            if field.class_name is not None:
                node["className"] = field.class_name
            node["type"] = field.type
            if field.get_method:
                node["getMethod"] = field.get_method
            if field.set_method:
                node["setMethod"] = field.set_method
            node["primitive"] = field.is_primitive
            node["array"] = field.is_array
            node["synthetic"] = field.synthetic
            if field.enumeration:
                node["enumeration"] = True
            node["path"] = field.path
        elif doc_type in (DocumentType.XML, DocumentType.JSON):
            node["status"] = field.status
            node["name"] = field.name
            node["type"] = field.type
            if field.is_attribute:
                node["attribute"] = True
            if field.enumeration:
                node["enumeration"] = True
            node["path"] = field.path
        else:
            node["name"] = field.name
            node["value"] = field.value
            node["type"] = field.type
            node["path"] = field.path
        return node

    @staticmethod
    def serialize_lookup_table(table: LookupTable) -> Dict[str, Any]:
        node: Dict[str, Any] = {"name": table.name}
        if table.description is not None:
            node["description"] = table.description
        node["lookupEntry"] = [
            {
                "sourceValue": e.source_value,
                "sourceType": e.source_type,
                "targetValue": e.target_value,
                "targetType": e.target_type,
            }
            for e in table.entries
        ]
        return node

    # ------------------------------------------------------------------
    # Deserialization
    # ------------------------------------------------------------------

    @staticmethod
    def deserialize_mapping_service_json(
        body: Dict[str, Any],
        definition: MappingDefinition,
        documents: Optional[DocumentSet] = None,
    ) -> List[DeserializationError]:
        """
        Load one mapping file into a definition.

        Lookup tables are read before any field mapping. A field mapping that
        cannot be read is reported and skipped; the others are still added.

        Args:
            body: Mapping service JSON ({"AtlasMapping": {...}})
            definition: Definition receiving the mappings
            documents: If given, fields are resolved against these documents
                       immediately; otherwise they stay placeholders until the
                       consistency pass

        Returns:
            One DeserializationError per rejected fieldMapping entry

        Raises:
            UnknownMappingType: if the document itself is not an AtlasMapping, or
                one of its list blocks is malformed;
                the definition is left untouched in that case
        """
        root = body.get("AtlasMapping") if isinstance(body, dict) else None
        if not isinstance(root, dict):
            raise UnknownMappingType(None, "mapping document")

        try:
            namespaces = {}
            for ns in MappingSerializer._list_of(root, "namespaces", "namespace"):
                if ns.get("alias"):
                    namespaces[ns["alias"]] = ns.get("uri")
            tables = [
                MappingSerializer.deserialize_lookup_table(n)
                for n in MappingSerializer._list_of(root, "lookupTables", "lookupTable")
            ]
            entries = MappingSerializer._list_of(root, "fieldMappings", "fieldMapping")
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Rejecting mapping document {root.get('name')!r}: {e}")
            raise UnknownMappingType(None, "mapping document header") from e

        definition.name = root.get("name") or definition.name
        definition.source_uri = root.get("sourceUri") or definition.source_uri
        definition.target_uri = root.get("targetUri") or definition.target_uri
        definition.namespaces.update(namespaces)
        for table in tables:
            definition.add_table(table)

        errors = []
        for i, node in enumerate(entries):
            try:
                mapping = MappingSerializer.deserialize_field_mapping(node, definition, documents)
            except (UnknownMappingType, KeyError, TypeError, ValueError, AttributeError) as e:
                json_type = node.get("jsonType") if isinstance(node, dict) else None
                logger.error(f"Skipping field mapping #{i} ({json_type}): {e}")
                errors.append(DeserializationError(index=i, message=str(e), json_type=json_type))
                continue
            definition.add_mapping(mapping)

        logger.debug(
            f"Deserialized {len(entries) - len(errors)} of {len(entries)} field mappings "
            f"from {definition.name}"
        )
        return errors

    @staticmethod
    def _list_of(node: Dict[str, Any], container: str, item: str) -> List[Any]:
        """Items of a {"container": {"item": [...]}} block; a missing block is empty."""
        block = node.get(container) or {}
        if not isinstance(block, dict):
            raise TypeError(f"'{container}' must be an object, got {type(block).__name__}")
        items = block.get(item) or []
        if not isinstance(items, list):
            raise TypeError(f"'{container}.{item}' must be a list, got {type(items).__name__}")
        return items

    @staticmethod
    def deserialize_field_mapping(

        node: Dict[str, Any],
        definition: MappingDefinition,
        documents: Optional[DocumentSet] = None,
    ) -> MappingModel:
        json_type = node.get("jsonType")
        mode = MODES_BY_MAPPING_TYPE.get(json_type)
        if mode is None:
            raise UnknownMappingType(json_type)

        mapping = MappingModel(name=definition.name)
        pair = mapping.get_first_field_mapping()

        inputs = MappingSerializer._mapped_field_nodes(node, "inputField", "inputFields")
        outputs = MappingSerializer._mapped_field_nodes(node, "outputField", "outputFields")
        pair.input_fields = [MappingSerializer.deserialize_mapped_field(n) for n in inputs] or [MappedField()]
        pair.output_fields = [MappingSerializer.deserialize_mapped_field(n) for n in outputs] or [MappedField()]

        pair.transition.apply_mode(mode)
        if mode in DELIMITED_MODES:
            pair.transition.delimiter = TransitionDelimiter(node.get("strategy") or DEFAULT_DELIMITER.value)
        if mode == TransitionMode.LOOKUPTABLE:
            pair.transition.lookup_table_name = node.get("lookupTableName")

        if documents is not None:
            for is_source in (True, False):
                for mapped_field in pair.get_mapped_fields(is_source):
                    definition.resolve_mapped_field(mapped_field, is_source, documents)
        return mapping

    @staticmethod
    def _mapped_field_nodes(node: Dict[str, Any], singular: str, plural: str) -> List[Dict[str, Any]]:
        if node.get(singular) is not None:
            return [node[singular]]
        return (node.get(plural) or {}).get("mappedField") or []

    @staticmethod
    def deserialize_mapped_field(node: Dict[str, Any]) -> MappedField:
        mapped_field = MappedField()

        for action_node in (node.get("fieldActions") or {}).get("fieldAction") or []:
            action_type = action_node.get("jsonType") or ""
            if action_type == MAP_ACTION_TYPE:
                mapped_field.index = action_node.get("index")
                continue
            prefix = f"{MAPPING_SERVICES_PACKAGE_PREFIX}."
            if not action_type.startswith(prefix):
                raise UnknownMappingType(action_type, "field action")
            arguments = {k: v for k, v in action_node.items() if k != "jsonType"}
            mapped_field.actions.append(FieldAction(name=action_type[len(prefix):], arguments=arguments))

        field_node = node.get("field")
        if field_node is None:
            return mapped_field

        placeholder, doc_type = MappingSerializer.deserialize_field(field_node)
        mapped_field.parsed_reference = ParsedFieldReference(
            document_type=doc_type,
            path=placeholder.path,
            placeholder=placeholder,
        )
        mapped_field.mark_unavailable(placeholder, "document not loaded")
        return mapped_field

    @staticmethod
    def deserialize_field(node: Dict[str, Any]) -> Tuple[Field, DocumentType]:
        """Build a placeholder Field from its wire form."""
        json_type = node.get("jsonType")
        doc_type = DOCUMENT_TYPES_BY_FIELD_TYPE.get(json_type)
        if doc_type is None:
            raise UnknownMappingType(json_type, "field")

        field = Field(
            name=node.get("name") or "",
            path=node.get("path") or "",
            type=node.get("type") or "STRING",
            status=node.get("status") or "SUPPORTED",
            enumeration=bool(node.get("enumeration", False)),
        )
        if doc_type == DocumentType.JAVA:
            field.class_name = node.get("className")
            field.modifiers = list((node.get("modifiers") or {}).get("modifier") or [])
            field.get_method = node.get("getMethod")
            field.set_method = node.get("setMethod")
            field.is_primitive = bool(node.get("primitive", False))
            field.is_array = bool(node.get("array", False))
            field.synthetic = bool(node.get("synthetic", False))
        elif doc_type in (DocumentType.XML, DocumentType.JSON):
            field.is_attribute = bool(node.get("attribute", False))
        else:
            field.value = node.get("value")
            field.user_created = True
            if doc_type == DocumentType.CONSTANT:
                field.name = field.name or (field.value or "")
                field.path = field.path or (field.value or "")
            else:
                field.path = field.path or field.name
        return field, doc_type

    @staticmethod
    def deserialize_lookup_table(node: Dict[str, Any]) -> LookupTable:
        if not node["name"]:
            raise ValueError("lookup table without a name")
        table = LookupTable(name=node["name"], description=node.get("description"))
        for entry in node.get("lookupEntry") or []:
            table.entries.append(
                LookupTableEntry(
                    source_value=entry.get("sourceValue"),
                    target_value=entry.get("targetValue"),
                    source_type=entry.get("sourceType") or "STRING",
                    target_type=entry.get("targetType") or "STRING",
                )
            )
        return table
