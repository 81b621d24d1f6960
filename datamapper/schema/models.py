"""Models representing source and target document schemas."""
import dataclasses
import logging
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class DocumentType(str, Enum):
    """Kinds of documents a mapping can read from or write to."""

    JAVA = "JAVA"
    XML = "XML"
    JSON = "JSON"
    PROPERTY = "PROPERTY"
    CONSTANT = "CONSTANT"


COMPLEX_TYPE = "COMPLEX"
NONE_TYPE = "NONE"

STRING_TYPES = {"STRING", "CHAR"}
NUMERIC_TYPES = {
    "BYTE",
    "SHORT",
    "INTEGER",
    "LONG",
    "FLOAT",
    "DOUBLE",
    "DECIMAL",
    "BIG_INTEGER",
    "NUMBER",
    "UNSIGNED_INTEGER",
}


@dataclass
class EnumValue:
    """One constant of an enum-typed field."""

    name: str
    ordinal: int = 0


@dataclass
class NamespaceModel:
    """An XML namespace known to a document."""

    alias: str
    uri: Optional[str] = None
    location: Optional[str] = None
    target_namespace: bool = False
    created_by_user: bool = False


@dataclass(eq=False)
class Field:
    """
    One addressable node in a document schema.

    Fields compare by identity: two fields with the same path in different
    documents are different endpoints.
    """

    name: str = ""
    path: str = ""
    type: str = "STRING"
    class_name: Optional[str] = None
    value: Optional[str] = None  # property / constant value
    status: str = "SUPPORTED"
    modifiers: List[str] = dataclass_field(default_factory=list)
    get_method: Optional[str] = None
    set_method: Optional[str] = None
    is_primitive: bool = False
    is_array: bool = False
    is_attribute: bool = False
    synthetic: bool = False
    enumeration: bool = False
    enum_values: List[EnumValue] = dataclass_field(default_factory=list)
    namespace_alias: Optional[str] = None
    user_created: bool = False

    children: List["Field"] = dataclass_field(default_factory=list, repr=False)
    parent_field: Optional["Field"] = dataclass_field(default=None, repr=False)
    doc_def: Optional["DocumentDefinition"] = dataclass_field(default=None, repr=False)

    # UI state
    selected: bool = False
    collapsed: bool = True
    part_of_mapping: bool = False
    available_for_selection: bool = True
    selection_exclusion_reason: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.namespace_alias:
            return f"{self.namespace_alias}:{self.name}"
        return self.name

    @property
    def identity(self) -> str:
        """Stable identity of the field across reloads: document + path."""
        doc_id = self.doc_def.identifier if self.doc_def is not None else ""
        return f"{doc_id}:{self.path}"

    def is_terminal(self) -> bool:
        return self.type != COMPLEX_TYPE

    def is_source(self) -> bool:
        return self.doc_def is not None and self.doc_def.is_source

    def is_string(self) -> bool:
        return self.type in STRING_TYPES

    def is_numeric(self) -> bool:
        return self.type in NUMERIC_TYPES

    def is_property_or_constant(self) -> bool:
        if self.doc_def is None:
            return False
        return self.doc_def.document_type in (DocumentType.PROPERTY, DocumentType.CONSTANT)

    def is_none_field(self) -> bool:
        return self is NONE_FIELD

    def clone_under(self, parent: "Field", separator: str) -> "Field":
        """Copy this field (and its subtree) beneath another parent."""
        copy = dataclasses.replace(
            self,
            path=f"{parent.path}{separator}{self.path.rsplit(separator, 1)[-1]}",
            children=[],
            parent_field=parent,
            doc_def=parent.doc_def,
            selected=False,
            part_of_mapping=False,
        )
        copy.children = [child.clone_under(copy, separator) for child in self.children]
        return copy


# Sentinel bound to a MappedField that has no real field yet
NONE_FIELD = Field(name="[None]", path="[None]", type=NONE_TYPE)


@dataclass(eq=False)
class DocumentDefinition:
    """One schema and its field tree."""

    name: str = ""
    document_type: DocumentType = DocumentType.JAVA
    is_source: bool = True
    identifier: str = ""
    uri: Optional[str] = None
    path_separator: str = "/"
    document_contents: Optional[str] = None  # raw XML / JSON for inspection
    inspection_type: str = "INSTANCE"  # "SCHEMA" or "INSTANCE"
    fields: List[Field] = dataclass_field(default_factory=list, repr=False)
    namespaces: List[NamespaceModel] = dataclass_field(default_factory=list)
    complex_types: Dict[str, Field] = dataclass_field(default_factory=dict, repr=False)
    initialized: bool = False
    error_occurred: bool = False
    _fields_by_path: Dict[str, Field] = dataclass_field(default_factory=dict, repr=False)

    @staticmethod
    def get_none_field() -> Field:
        return NONE_FIELD

    @property
    def fully_qualified_name(self) -> str:
        return self.identifier or self.name

    @property
    def is_synthetic(self) -> bool:
        return self.document_type in (DocumentType.PROPERTY, DocumentType.CONSTANT)

    @property
    def finished_loading(self) -> bool:
        return self.initialized or self.error_occurred

    def add_field(self, field: Field, parent: Optional[Field] = None) -> Field:
        """Attach a field to the tree (root level when parent is None) and index it."""
        field.doc_def = self
        field.parent_field = parent
        if parent is None:
            self.fields.append(field)
        else:
            parent.children.append(field)
            if parent.type == COMPLEX_TYPE and parent.class_name:
                self.complex_types.setdefault(parent.class_name, parent)
        self._index(field)
        return field

    def _index(self, field: Field) -> None:
        field.doc_def = self
        self._fields_by_path[field.path] = field
        if field.type == COMPLEX_TYPE and field.children and field.class_name:
            self.complex_types.setdefault(field.class_name, field)
        for child in field.children:
            child.parent_field = field
            self._index(child)

    def get_field(self, path: str) -> Optional[Field]:
        return self._fields_by_path.get(path)

    def get_all_fields(self) -> List[Field]:
        return list(self._fields_by_path.values())

    def get_terminal_fields(self) -> List[Field]:
        return [f for f in self._fields_by_path.values() if f.is_terminal()]

    def populate_children(self, field: Field) -> bool:
        """
        Fill in the children of a complex field that the inspection service
        returned without them (a type already expanded elsewhere in the tree).

        Returns:
            True if children were added
        """
        if field.is_terminal() or field.children or not field.class_name:
            return False

        template = self.complex_types.get(field.class_name)
        if template is None or template is field:
            return False

        for child in template.children:
            field.children.append(child.clone_under(field, self.path_separator))
        for child in field.children:
            self._index(child)

        logger.debug(
            f"Populated {len(field.children)} children for {field.path} from {field.class_name}"
        )
        return True

    @staticmethod
    def select_fields(fields: Iterable[Field]) -> None:
        for field in fields:
            if field is not NONE_FIELD:
                field.selected = True

    def clear_selected_fields(self) -> None:
        for field in self._fields_by_path.values():
            field.selected = False

    def get_selected_fields(self) -> List[Field]:
        return [f for f in self._fields_by_path.values() if f.selected]

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def get_namespace_for_alias(self, alias: str) -> Optional[NamespaceModel]:
        for ns in self.namespaces:
            if ns.alias == alias:
                return ns
        return None

    def add_namespace(self, namespace: NamespaceModel) -> bool:
        if self.get_namespace_for_alias(namespace.alias) is not None:
            return False
        self.namespaces.append(namespace)
        return True

    def namespace_aliases_in_path(self, path: str) -> List[str]:
        """Namespace prefixes used by the segments of a path, in order."""
        aliases = []
        for segment in path.split(self.path_separator):
            if ":" in segment:
                alias = segment.split(":", 1)[0]
                if alias and alias not in aliases:
                    aliases.append(alias)
        return aliases

    # ------------------------------------------------------------------
    # Synchronization with mappings
    # ------------------------------------------------------------------

    def update_from_mappings(self, mapping_fields: Iterable[Field]) -> None:
        """
        Flag the fields used by mappings and adopt user-created
        property/constant fields that only exist in the mappings.
        """
        for field in self._fields_by_path.values():
            field.part_of_mapping = False

        for field in mapping_fields:
            if field.doc_def is not self or field is NONE_FIELD:
                continue
            if self.is_synthetic and self.get_field(field.path) is None:
                self.add_field(field)
            current = field
            while current is not None:
                current.part_of_mapping = True
                current = current.parent_field

    def create_user_field(self, name: str, value: Optional[str], field_type: str = "STRING") -> Field:
        """Create a property/constant field that was not part of an inspected schema."""
        path = value if self.document_type == DocumentType.CONSTANT and value else name
        return Field(
            name=name or path or "",
            path=path or name or "",
            type=field_type or "STRING",
            value=value,
            user_created=True,
            doc_def=self,
        )


class DocumentSet:
    """
    All documents of one mapping session.

    The Properties and Constants documents always exist, are source-only and
    count as loaded from the start.
    """

    def __init__(self):
        self.source_docs: List[DocumentDefinition] = []
        self.target_docs: List[DocumentDefinition] = []
        self.property_doc = DocumentDefinition(
            name="Properties",
            document_type=DocumentType.PROPERTY,
            is_source=True,
            identifier="DOC.Properties",
            initialized=True,
        )
        self.constant_doc = DocumentDefinition(
            name="Constants",
            document_type=DocumentType.CONSTANT,
            is_source=True,
            identifier="DOC.Constants",
            initialized=True,
        )

    def add_document(self, doc: DocumentDefinition) -> DocumentDefinition:
        if doc.is_source:
            self.source_docs.append(doc)
        else:
            self.target_docs.append(doc)
        return doc

    def add_java_document(self, class_name: str, is_source: bool) -> DocumentDefinition:
        return self.add_document(
            DocumentDefinition(
                name=class_name.split(".")[-1],
                document_type=DocumentType.JAVA,
                is_source=is_source,
                identifier=class_name,
                uri=f"atlas:java?className={class_name}",
                path_separator=".",
            )
        )

    def add_xml_document(
        self,
        identifier: str,
        contents: str,
        is_source: bool,
        schema_inspection: bool = True,
    ) -> DocumentDefinition:
        return self.add_document(
            DocumentDefinition(
                name=identifier,
                document_type=DocumentType.XML,
                is_source=is_source,
                identifier=identifier,
                uri=identifier,
                path_separator="/",
                document_contents=contents,
                inspection_type="SCHEMA" if schema_inspection else "INSTANCE",
            )
        )

    def add_json_document(self, identifier: str, contents: str, is_source: bool) -> DocumentDefinition:
        return self.add_document(
            DocumentDefinition(
                name=identifier,
                document_type=DocumentType.JSON,
                is_source=is_source,
                identifier=identifier,
                uri=identifier,
                path_separator="/",
                document_contents=contents,
            )
        )

    def get_docs_without_property_doc(self, is_source: bool) -> List[DocumentDefinition]:
        return list(self.source_docs if is_source else self.target_docs)

    def get_docs(self, is_source: bool) -> List[DocumentDefinition]:
        docs = self.get_docs_without_property_doc(is_source)
        if is_source:
            docs.extend([self.property_doc, self.constant_doc])
        return docs

    def get_all_docs(self) -> List[DocumentDefinition]:
        return [self.property_doc, self.constant_doc] + self.source_docs + self.target_docs

    def get_first_xml_doc(self, is_source: bool) -> Optional[DocumentDefinition]:
        for doc in self.get_docs_without_property_doc(is_source):
            if doc.document_type == DocumentType.XML:
                return doc
        return None

    def get_doc(self, identifier: str) -> Optional[DocumentDefinition]:
        for doc in self.get_all_docs():
            if doc.identifier == identifier:
                return doc
        return None

    def documents_are_loaded(self) -> bool:
        return all(doc.initialized for doc in self.get_all_docs())

    def find_field(
        self,
        path: str,
        is_source: bool,
        document_type: Optional[DocumentType] = None,
        identifier: Optional[str] = None,
    ) -> Tuple[Optional[DocumentDefinition], Optional[Field]]:
        """
        Resolve a field path against the documents of one side.

        Returns:
            (document, field); document is the best candidate owner even when
            the field itself is not found, field is None in that case
        """
        candidates = [
            doc
            for doc in self.get_docs(is_source)
            if (document_type is None or doc.document_type == document_type)
            and (identifier is None or doc.identifier == identifier)
        ]
        for doc in candidates:
            found = doc.get_field(path)
            if found is not None:
                return doc, found
        return (candidates[0] if candidates else None), None

    def select_fields(self, fields: Iterable[Field]) -> None:
        DocumentDefinition.select_fields(fields)

    def clear_selected_fields(self) -> None:
        for doc in self.get_all_docs():
            doc.clear_selected_fields()

    def summary(self) -> Dict[str, Any]:
        """Load state of every document, for status output."""
        return {
            doc.fully_qualified_name: {
                "source": doc.is_source,
                "type": doc.document_type.value,
                "loaded": doc.initialized,
                "error": doc.error_occurred,
                "fields": len(doc.get_all_fields()),
            }
            for doc in self.get_all_docs()
        }
