"""JSON exporter."""
import json
from pathlib import Path
from datetime import datetime
from typing import Any, Dict, Optional

from datamapper.exporter.mapping_serializer import MappingSerializer
from datamapper.mapper.definition import MappingDefinition
from datamapper.schema.models import DocumentSet


class JsonExporter:
    """Export a mapping session to JSON files."""

    def export(
        self,
        output_file: Path,
        definition: MappingDefinition,
        documents: Optional[DocumentSet] = None,
    ) -> Dict[str, Any]:
        """Export the AtlasMapping document of a session to a file."""
        output_file.parent.mkdir(parents=True, exist_ok=True)

        data = MappingSerializer.serialize_mappings(definition, documents)

        with open(output_file, "w") as f:
            json.dump(data, f, indent=2, default=str)
        return data

    def export_summary(
        self,
        output_file: Path,
        definition: MappingDefinition,
        documents: DocumentSet,
    ) -> None:
        """Export session metadata and document load state."""
        output_file.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "metadata": {
                "created_at": datetime.now().isoformat(),
                "mapping_name": definition.name,
                "mappings": len(definition.mappings),
                "lookup_tables": len(definition.get_tables()),
            },
            "documents": documents.summary(),
        }

        with open(output_file, "w") as f:
            json.dump(data, f, indent=2, default=str)
