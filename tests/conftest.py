"""Shared fixtures: a small Java source/target document pair and a mapping file."""
import copy

import pytest

from datamapper.schema.models import COMPLEX_TYPE, DocumentSet, EnumValue, Field
from datamapper.transformer.registry import FieldActionCatalog

SOURCE_CLASS = "twitter4j.Status"
TARGET_CLASS = "org.apache.camel.salesforce.dto.Contact"


def java_field(name, path, type="STRING", class_name="java.lang.String", **kwargs):
    return Field(name=name, path=path, type=type, class_name=class_name, **kwargs)


def build_documents() -> DocumentSet:
    documents = DocumentSet()

    source = documents.add_java_document(SOURCE_CLASS, is_source=True)
    source.add_field(java_field("text", "Text", get_method="getText", is_primitive=True))
    user = source.add_field(java_field("user", "User", type=COMPLEX_TYPE, class_name="twitter4j.User"))
    source.add_field(java_field("name", "User.Name", get_method="getName", is_primitive=True), user)
    source.add_field(java_field("screenName", "User.ScreenName", get_method="getScreenName", is_primitive=True), user)
    source.add_field(java_field("retweetCount", "RetweetCount", type="INTEGER", class_name="int"))
    source.add_field(
        java_field(
            "lang",
            "Lang",
            class_name="twitter4j.Lang",
            enumeration=True,
            enum_values=[EnumValue("EN", 0), EnumValue("FR", 1), EnumValue("DE", 2)],
        )
    )
    source.initialized = True

    target = documents.add_java_document(TARGET_CLASS, is_source=False)
    for name in ("Description", "FirstName", "LastName", "Title"):
        target.add_field(
            java_field(
                name,
                name,
                modifiers=["PRIVATE"],
                get_method=f"get{name}",
                set_method=f"set{name}",
                is_primitive=True,
            )
        )
    target.add_field(java_field("NumberOfEmployees", "NumberOfEmployees", type="INTEGER", class_name="int"))
    target.add_field(
        java_field(
            "Language",
            "Language",
            class_name="org.apache.camel.salesforce.dto.Language",
            enumeration=True,
            enum_values=[EnumValue("EN", 0), EnumValue("FR", 1), EnumValue("ES", 2)],
        )
    )
    target.initialized = True
    return documents


def mapped_field_node(path, name, modifiers=None, set_method=None, index=None):
    field = {
        "jsonType": "io.atlasmap.java.v2.JavaField",
        "status": "SUPPORTED",
        "modifiers": {"modifier": list(modifiers or [])},
        "name": name,
        "className": "java.lang.String",
        "type": "STRING",
        "getMethod": f"get{name[0].upper()}{name[1:]}",
        "primitive": True,
        "array": False,
        "synthetic": False,
        "path": path,
    }
    if set_method:
        field["setMethod"] = set_method
    actions = None
    if index is not None:
        actions = {"fieldAction": [{"jsonType": "io.atlasmap.v2.MapAction", "index": index}]}
    return {"jsonType": "io.atlasmap.v2.MappedField", "field": field, "fieldActions": actions}


def build_mapping_json():
    return {
        "AtlasMapping": {
            "jsonType": "io.atlasmap.v2.AtlasMapping",
            "fieldMappings": {
                "fieldMapping": [
                    {
                        "jsonType": "io.atlasmap.v2.MapFieldMapping",
                        "inputField": mapped_field_node("Text", "text"),
                        "outputField": mapped_field_node(
                            "Description", "Description", ["PRIVATE"], "setDescription"
                        ),
                    },
                    {
                        "jsonType": "io.atlasmap.v2.SeparateFieldMapping",
                        "inputField": mapped_field_node("User.Name", "name"),
                        "outputFields": {
                            "mappedField": [
                                mapped_field_node("FirstName", "FirstName", ["PRIVATE"], "setFirstName", 0),
                                mapped_field_node("LastName", "LastName", ["PRIVATE"], "setLastName", 1),
                            ]
                        },
                        "strategy": "SPACE",
                    },
                    {
                        "jsonType": "io.atlasmap.v2.MapFieldMapping",
                        "inputField": mapped_field_node("User.ScreenName", "screenName"),
                        "outputField": mapped_field_node("Title", "Title", ["PRIVATE"], "setTitle"),
                    },
                ]
            },
            "name": "UI.867332",
            "sourceUri": f"atlas:java?className={SOURCE_CLASS}",
            "targetUri": f"atlas:java?className={TARGET_CLASS}",
            "lookupTables": {"lookupTable": []},
        }
    }


# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def documents():
    """Loaded source (twitter4j.Status) and target (Contact) documents"""
    return build_documents()


@pytest.fixture
def source_doc(documents):
    return documents.get_doc(SOURCE_CLASS)


@pytest.fixture
def target_doc(documents):
    return documents.get_doc(TARGET_CLASS)


@pytest.fixture
def catalog():
    """Catalog with the built-in field actions"""
    return FieldActionCatalog()


@pytest.fixture
def mapping_json():
    """Mapping file with one MAP, one SEPARATE and one more MAP pair"""
    return copy.deepcopy(build_mapping_json())
