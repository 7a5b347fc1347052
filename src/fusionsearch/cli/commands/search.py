"""CLI command for running hybrid searches.

Implements the 'fusionsearch search' command, which runs a lexical and a
vector search against a Solr collection and prints the fused ranking.
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from fusionsearch.config.loader import ConfigLoader
from fusionsearch.lib.errors import ConfigError, FileNotFoundError, FusionSearchError
from fusionsearch.lib.logging_config import get_logger, setup_logging
from fusionsearch.lib.retrieval import HybridSearchExecutor, SearchResponse
from fusionsearch.lib.solr_client import SolrClient

logger = get_logger(__name__)


@click.command()
@click.argument("collection")
@click.argument("query")
@click.option(
    "--top-k",
    "-k",
    type=int,
    default=None,
    help="Maximum number of results (default: search.default_top_k)",
)
@click.option(
    "--min-score",
    type=float,
    default=None,
    help="Drop fused results scoring below this value",
)
@click.option(
    "--fields",
    "-f",
    type=str,
    default=None,
    help="Comma-separated list of fields to return",
)
@click.option(
    "--filter",
    "filter_expression",
    type=str,
    default=None,
    help="Equality filter such as \"genre == 'jazz'\"",
)
@click.option(
    "--fq",
    "filter_queries",
    multiple=True,
    help="Native Solr filter query, may be repeated",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to fusionsearch.yaml",
)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.option(
    "--debug/--no-debug",
    default=False,
    help="Enable debug logging",
)
def search(
    collection: str,
    query: str,
    top_k: int | None,
    min_score: float | None,
    fields: str | None,
    filter_expression: str | None,
    filter_queries: tuple[str, ...],
    config_path: str | None,
    as_json: bool,
    debug: bool,
) -> None:
    """Run a hybrid search against COLLECTION for QUERY.

    Example:

        fusionsearch search articles "heat pump efficiency" --top-k 5

        fusionsearch search articles "jazz" --filter "genre == 'jazz'"

        fusionsearch search articles "reviews" --fq "year:[2020 TO *]" --json
    """
    setup_logging(verbose=debug, quiet=not debug)

    logger.info(
        f"Search command invoked: collection={collection}, query={query!r}, "
        f"top_k={top_k}"
    )

    requested_fields = (
        [name.strip() for name in fields.split(",") if name.strip()] if fields else None
    )

    try:
        config = ConfigLoader().load(config_path)
        with SolrClient.from_config(config.solr) as client:
            executor = HybridSearchExecutor.from_config(config, client=client)
            response = asyncio.run(
                executor.hybrid_search(
                    collection,
                    query,
                    top_k=top_k,
                    min_fused_score=min_score,
                    fields=requested_fields,
                    filter_expression=filter_expression,
                    filter_queries=list(filter_queries),
                )
            )
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Configuration error: {e}", exc_info=True)
        click.secho("Error: Failed to load configuration", fg="red", err=True)
        click.echo(f"  {str(e)}", err=True)
        sys.exit(1)
    except FusionSearchError as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        click.secho(f"Error: {str(e)}", fg="red", err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.secho(f"Error: {str(e)}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2, default=str))
    else:
        _print_response(response, content_field=config.schema_.content_field)


def _print_response(response: SearchResponse, content_field: str) -> None:
    click.secho(
        f"Mode: {response.mode.value} ({len(response.documents)} results)",
        bold=True,
    )
    if response.failed_searches:
        click.secho(
            f"Unavailable: {', '.join(response.failed_searches)} search",
            fg="yellow",
        )
    if response.spellcheck_suggestion:
        click.echo(f"Did you mean: {response.spellcheck_suggestion}")

    for document in response.documents:
        click.echo(document.format(content_field=content_field))

    for name, counts in response.facets.items():
        if not counts:
            continue
        summary = ", ".join(f"{value} ({count})" for value, count in counts.items())
        click.echo(f"{name}: {summary}")
