#!/usr/bin/env python3
"""Data Mapper - Entry point."""
import logging
import sys

import click
from colorama import Fore, Style, init

from config import AppConfig
from datamapper import __version__
from datamapper.cli.session_cli import SessionCLI

# Initialize colorama
init(autoreset=True)


def print_banner():
    """Print application banner."""
    print(f"{Fore.CYAN}{'=' * 44}")
    print(f"{Fore.CYAN}║   {Fore.WHITE}Data Mapper{Fore.CYAN}                          ║")
    print(f"{Fore.CYAN}║   {Fore.WHITE}Mapping Definition Toolkit{Fore.CYAN}           ║")
    print(f"{Fore.CYAN}{'=' * 44}{Style.RESET_ALL}")
    print()


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """Data Mapper - Design and persist field mappings between documents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = AppConfig.from_env()


@cli.command()
@click.argument("mapping_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the re-serialized mapping here")
@click.pass_obj
def inspect(config, mapping_file, output):
    """Read a mapping file and summarize its mappings."""
    print_banner()
    sys.exit(SessionCLI(config).inspect(mapping_file, output))


@cli.command("list-mappings")
@click.option("--filter", "name_filter", default=None, help="Mapping name filter (default from config)")
@click.pass_obj
def list_mappings(config, name_filter):
    """List mapping files stored in the mapping service."""
    print_banner()
    sys.exit(SessionCLI(config).list_mappings(name_filter or config.mapping_file_filter))


@cli.command()
@click.option("--source-class", multiple=True, help="Java class of a source document")
@click.option("--target-class", multiple=True, help="Java class of a target document")
@click.option("--source-xml", multiple=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--target-xml", multiple=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--source-json", multiple=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--target-json", multiple=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--mapping-file", multiple=True, help="Mapping file to load (default: discover)")
@click.option("--timeout", type=float, default=120.0, show_default=True, help="Seconds to wait for loading")
@click.option("--export", type=click.Path(dir_okay=False), help="Export the loaded mappings to this file")
@click.option("--validate-remote", is_flag=True, help="Also run the validation service")
@click.pass_obj
def load(config, source_class, target_class, source_xml, target_xml, source_json, target_json,
         mapping_file, timeout, export, validate_remote):
    """Initialize a mapping session against the configured services."""
    print_banner()

    if mapping_file:
        config.mapping_files = list(mapping_file)

    documents = {
        "source_classes": source_class,
        "target_classes": target_class,
        "source_xml": source_xml,
        "target_xml": target_xml,
        "source_json": source_json,
        "target_json": target_json,
    }
    sys.exit(SessionCLI(config).load(documents, timeout, export, validate_remote))


if __name__ == "__main__":
    cli()
