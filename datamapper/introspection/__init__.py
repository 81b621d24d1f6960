"""
Document Introspection Module

Loads source and target document schemas from the inspection services.
Supports:
- Java classes (with Maven classpath resolution)
- XML schemas and instances, with namespaces
- JSON schemas and instances
"""

from .document_inspector import DocumentInspector
from .inspection_parser import InspectionParser

__all__ = [
    "DocumentInspector",
    "InspectionParser",
]
