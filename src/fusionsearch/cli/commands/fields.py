"""CLI command for inspecting the populated fields of a collection."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict

import click

from fusionsearch.config.loader import ConfigLoader
from fusionsearch.lib.errors import ConfigError, FileNotFoundError, FusionSearchError
from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.logging_config import get_logger, setup_logging
from fusionsearch.lib.solr_client import SolrClient

logger = get_logger(__name__)


@click.command()
@click.argument("collection")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to fusionsearch.yaml",
)
@click.option("--json", "as_json", is_flag=True, help="Print fields as JSON")
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
def fields(
    collection: str, config_path: str | None, as_json: bool, debug: bool
) -> None:
    """List the fields COLLECTION populates, with their schema types.

    Fields are discovered by sampling documents, then matched to explicit or
    dynamic field definitions.
    """
    setup_logging(verbose=debug, quiet=not debug)

    try:
        config = ConfigLoader().load(config_path)
        with SolrClient.from_config(config.solr) as client:
            resolver = FieldSchemaResolver(
                client,
                sample_size=config.schema_.sample_size,
                ttl_seconds=config.schema_.field_cache_ttl_seconds,
            )
            infos = resolver.describe_fields(collection)
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        click.secho("Error: Failed to load configuration", fg="red", err=True)
        click.echo(f"  {str(e)}", err=True)
        sys.exit(1)
    except FusionSearchError as e:
        logger.error(f"Field discovery failed: {e}", exc_info=True)
        click.secho(f"Error: {str(e)}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([asdict(info) for info in infos], indent=2))
        return

    if not infos:
        click.secho(f"No populated fields found in '{collection}'", fg="yellow")
        return

    for info in infos:
        flags = [
            flag
            for flag, enabled in (
                ("multiValued", info.multi_valued),
                ("docValues", info.doc_values),
                ("unstored", not info.stored),
            )
            if enabled
        ]
        line = f"{info.name}: {info.type or 'unknown'}"
        if info.dynamic_pattern:
            line += f" [{info.dynamic_pattern}]"
        if flags:
            line += f" ({', '.join(flags)})"
        click.echo(line)
