"""Command implementations for the data mapper CLI."""
import json
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import click
from colorama import Fore, Style

from config import AppConfig
from datamapper.errors import DataMapperError
from datamapper.exporter.json_exporter import JsonExporter
from datamapper.exporter.mapping_serializer import MappingSerializer
from datamapper.mapper.definition import MappingDefinition
from datamapper.mapper.mapping import MappingModel
from datamapper.schema.models import DocumentSet
from datamapper.services.session import MappingSession
from datamapper.transformer.registry import FieldActionCatalog
from datamapper.validator.mapping_validator import MappingValidator


class SessionCLI:
    """CLI interface over one mapping session."""

    def __init__(self, config: AppConfig):
        """Initialize CLI."""
        self.config = config
        self.exporter = JsonExporter()

    def print_header(self, title: str):
        """Print a section header."""
        print(f"\n{Fore.CYAN}{'━' * 45}")
        print(f"{Fore.CYAN}{title}")
        print(f"{Fore.CYAN}{'━' * 45}{Style.RESET_ALL}\n")

    def inspect(self, mapping_file: str, output: Optional[str] = None) -> int:
        """Read a mapping file offline and summarize it."""
        self.print_header("Inspect Mapping File")

        with open(mapping_file, "r") as f:
            body = json.load(f)

        definition = MappingDefinition()
        try:
            rejected = MappingSerializer.deserialize_mapping_service_json(body, definition)
        except DataMapperError as e:
            click.echo(f"{Fore.RED}❌ {e}")
            return 1

        click.echo(f"{Fore.GREEN}Loaded: {Path(mapping_file).name}")
        click.echo(f"   Name: {definition.name}")
        click.echo(f"   Source: {definition.source_uri}")
        click.echo(f"   Target: {definition.target_uri}")
        click.echo(f"   Mappings: {len(definition.mappings)}")
        click.echo(f"   Lookup tables: {len(definition.get_tables())}\n")

        for mapping in definition.mappings:
            self._print_mapping(mapping)

        for entry in rejected:
            click.echo(f"{Fore.RED}  ⚠ Field mapping #{entry.index} skipped: {entry.message}")

        problems = MappingValidator(FieldActionCatalog()).validate(definition)
        if problems:
            click.echo(f"\n{Fore.YELLOW}Validation ({len(problems)} issues):")
            for problem in problems:
                click.echo(f"{Fore.YELLOW}  - {problem}")

        if output:
            self.exporter.export(Path(output), definition)
            click.echo(f"\n{Fore.GREEN}✅ Re-serialized to {output}")

        return 1 if rejected else 0

    def list_mappings(self, name_filter: Optional[str]) -> int:
        """List mapping files stored in the mapping service."""
        self.print_header("Stored Mappings")

        session = MappingSession(self.config)
        try:
            names = session.mapping_client.list_mapping_files(name_filter)
        except DataMapperError as e:
            click.echo(f"{Fore.RED}❌ {e}")
            return 1

        if not names:
            click.echo(f"{Fore.YELLOW}No mappings found")
            return 0

        for name in names:
            click.echo(f"  {name}")
        return 0

    def load(
        self,
        documents: Dict[str, Sequence[str]],
        timeout: Optional[float] = None,
        export: Optional[str] = None,
        validate_remote: bool = False,
    ) -> int:
        """
        Run a full initialization against the configured services.

        Args:
            documents: Keys source_classes, target_classes, source_xml,
                       target_xml, source_json, target_json
        """
        self.print_header("Load Mapping Session")

        doc_set = self._build_documents(documents)
        session = MappingSession(self.config, documents=doc_set)
        session.initialization.initialization_status_changed.subscribe(
            lambda status, message: click.echo(f"{Fore.CYAN}  {message}")
        )

        try:
            if not session.start(timeout):
                click.echo(f"{Fore.RED}❌ Initialization did not finish within {timeout}s")
                return 1

            click.echo(f"\n{Fore.GREEN}Documents:")
            for name, state in doc_set.summary().items():
                color = Fore.RED if state["error"] else Fore.GREEN
                click.echo(
                    f"{color}  {name} ({state['type']}, {'source' if state['source'] else 'target'}): "
                    f"{state['fields']} fields{' [ERROR]' if state['error'] else ''}"
                )

            click.echo(f"\n{Fore.GREEN}Mappings: {len(session.definition.mappings)}")
            for mapping in session.definition.mappings:
                self._print_mapping(mapping)

            problems = session.validator.validate(session.definition)
            if validate_remote:
                problems += session.validator.validate_remote(session.definition, doc_set)
            for problem in problems:
                click.echo(f"{Fore.YELLOW}  - {problem}")

            if export:
                self.exporter.export(Path(export), session.definition, doc_set)
                click.echo(f"\n{Fore.GREEN}✅ Exported to {export}")
        except DataMapperError as e:
            click.echo(f"{Fore.RED}❌ {e}")
            return 1
        finally:
            session.close()

        if session.initialization.initialization_error_occurred:
            click.echo(f"\n{Fore.RED}{session.initialization.loading_status}")
            return 1
        return 0

    def _build_documents(self, documents: Dict[str, Sequence[str]]) -> DocumentSet:
        doc_set = DocumentSet()
        for is_source, side in ((True, "source"), (False, "target")):
            for class_name in documents.get(f"{side}_classes", ()):
                doc_set.add_java_document(class_name, is_source)
            for path in documents.get(f"{side}_xml", ()):
                doc_set.add_xml_document(Path(path).name, Path(path).read_text(), is_source)
            for path in documents.get(f"{side}_json", ()):
                doc_set.add_json_document(Path(path).name, Path(path).read_text(), is_source)
        return doc_set

    def _print_mapping(self, mapping: MappingModel):
        for pair in mapping.field_mappings:
            inputs = self._describe(pair.get_mapped_fields(True))
            outputs = self._describe(pair.get_mapped_fields(False))
            click.echo(
                f"  {Fore.WHITE}{', '.join(inputs)} {Fore.CYAN}→{Fore.WHITE} {', '.join(outputs)}"
                f" {Fore.CYAN}[{pair.transition.get_pretty_name()}]{Style.RESET_ALL}"
            )

    @staticmethod
    def _describe(mapped_fields) -> List[str]:
        result = []
        for mf in mapped_fields:
            label = mf.field.path if mf.is_bound() else "[None]"
            if mf.actions:
                label += " (" + ", ".join(a.name for a in mf.actions) + ")"
            if mf.is_bound() and not mf.available:
                label = f"{Fore.RED}{label}?{Fore.WHITE}"
            result.append(label)
        return result
