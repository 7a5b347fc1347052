"""fusionsearch command-line entry point."""

import click

from fusionsearch import __version__
from fusionsearch.cli.commands.fields import fields
from fusionsearch.cli.commands.index import index
from fusionsearch.cli.commands.search import search


@click.group()
@click.version_option(__version__, prog_name="fusionsearch")
def main() -> None:
    """Hybrid lexical and vector search over Apache Solr."""


main.add_command(search)
main.add_command(fields)
main.add_command(index)


if __name__ == "__main__":
    main()
