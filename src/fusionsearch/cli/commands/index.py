"""CLI command for indexing documents from a JSON or JSONL file."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError as PydanticValidationError

from fusionsearch.config.loader import ConfigLoader
from fusionsearch.config.validator import flatten_pydantic_errors
from fusionsearch.lib.embeddings import EmbeddingAdapter
from fusionsearch.lib.errors import ConfigError, FileNotFoundError, FusionSearchError
from fusionsearch.lib.field_schema import FieldSchemaResolver
from fusionsearch.lib.logging_config import get_logger, setup_logging
from fusionsearch.lib.solr_client import SolrClient
from fusionsearch.models.record import IndexRequest
from fusionsearch.services.indexing import IndexService

logger = get_logger(__name__)


def read_documents(path: Path) -> list[dict[str, Any]]:
    """Read documents from a JSON array/object file or a JSONL file.

    Raises:
        ValueError: If the file is not valid JSON or JSONL
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".jsonl":
        documents = [
            json.loads(line) for line in text.splitlines() if line.strip()
        ]
    else:
        loaded = json.loads(text)
        documents = loaded if isinstance(loaded, list) else [loaded]

    for i, document in enumerate(documents, start=1):
        if not isinstance(document, dict):
            raise ValueError(f"Document {i} is not a JSON object")
    return documents


@click.command()
@click.argument("collection")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to fusionsearch.yaml",
)
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
def index(collection: str, file: str, config_path: str | None, debug: bool) -> None:
    """Index the documents in FILE into COLLECTION.

    FILE is a JSON array of documents or a JSONL file with one document per
    line. Each document needs "content"; "id", "metadata" and "vector" are
    optional. Documents without a vector are embedded before indexing.
    """
    setup_logging(verbose=debug, quiet=not debug)

    try:
        raw_documents = read_documents(Path(file))
        requests = [IndexRequest.model_validate(doc) for doc in raw_documents]
    except PydanticValidationError as e:
        click.secho(f"Error: Invalid document in {file}", fg="red", err=True)
        for message in flatten_pydantic_errors(e):
            click.echo(f"  {message}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.secho(f"Error: Invalid document file {file}", fg="red", err=True)
        click.echo(f"  {str(e)}", err=True)
        sys.exit(1)

    try:
        config = ConfigLoader().load(config_path)
        with SolrClient.from_config(config.solr) as client:
            resolver = FieldSchemaResolver(
                client,
                sample_size=config.schema_.sample_size,
                ttl_seconds=config.schema_.field_cache_ttl_seconds,
            )
            service = IndexService(
                client,
                EmbeddingAdapter.from_config(config.embedding),
                config.schema_,
                resolver,
            )
            response = asyncio.run(service.index_records(collection, requests))
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        click.secho("Error: Failed to load configuration", fg="red", err=True)
        click.echo(f"  {str(e)}", err=True)
        sys.exit(1)
    except FusionSearchError as e:
        logger.error(f"Indexing failed: {e}", exc_info=True)
        click.secho(f"Error: {str(e)}", fg="red", err=True)
        sys.exit(1)

    if response.failed:
        click.secho(f"Error: {response.message}", fg="red", err=True)
        sys.exit(1)

    click.secho(response.message, fg="green")
