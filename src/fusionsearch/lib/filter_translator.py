"""Translation of generic filter expressions into Solr filter queries.

Callers can express a simple equality constraint as ``field == 'value'``
(or ``field = 'value'``) without knowing Solr syntax or the collection's
metadata naming convention. Anything richer (ranges, boolean logic,
wildcards) must be supplied directly as a native ``fq`` clause.

Unparseable expressions fail closed: the translator returns None, logs a
warning, and the search runs without that clause.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# field (== | =) literal, where literal is 'single', "double" or a bare token
FILTER_EXPRESSION_PATTERN = re.compile(
    r"""^\s*
    (?P<field>[A-Za-z_][A-Za-z0-9_.\-]*)
    \s*(?P<op>==|=)\s*
    (?:
        '(?P<single>[^']*)'
      | "(?P<double>[^"]*)"
      | (?P<bare>[^\s'"]+)
    )
    \s*$""",
    re.VERBOSE,
)

# Characters with special meaning in the Lucene/Solr query parser
_SPECIAL_CHARS = frozenset('\\+-!():^[]"{}~*?|&;/')


def escape_query_chars(value: str) -> str:
    """Escape Solr query-parser special characters and whitespace.

    Example:
        >>> escape_query_chars("C++ (advanced)")
        'C\\\\+\\\\+\\\\ \\\\(advanced\\\\)'
    """
    escaped: list[str] = []
    for char in value:
        if char in _SPECIAL_CHARS or char.isspace():
            escaped.append("\\")
        escaped.append(char)
    return "".join(escaped)


@dataclass(frozen=True)
class FilterExpression:
    """A parsed ``field OP literal`` triple."""

    field: str
    operator: str
    literal: str


def parse_filter_expression(expression: str) -> FilterExpression | None:
    """Parse a generic equality expression.

    Args:
        expression: Expression such as ``genre == 'jazz'``

    Returns:
        FilterExpression, or None if the expression is not a supported
        equality form or the literal is empty

    Example:
        >>> parse_filter_expression("genre == 'jazz'")
        FilterExpression(field='genre', operator='==', literal='jazz')
        >>> parse_filter_expression("year > 2000") is None
        True
    """
    match = FILTER_EXPRESSION_PATTERN.match(expression or "")
    if match is None:
        return None

    literal = next(
        (
            match.group(name)
            for name in ("single", "double", "bare")
            if match.group(name) is not None
        ),
        "",
    )
    if not literal.strip():
        return None
    return FilterExpression(match.group("field"), match.group("op"), literal)


class FilterTranslator:
    """Converts FilterExpressions into native ``fq`` clauses.

    Fields outside the explicit schema are routed into the metadata field
    family by prefixing them, unless the caller already used the prefix.

    Example:
        >>> translator = FilterTranslator({"id", "content"}, "metadata_")
        >>> translator.translate("genre == 'jazz fusion'")
        'metadata_genre:jazz\\\\ fusion'
        >>> translator.translate("id = 'doc-1'")
        'id:doc\\\\-1'
    """

    def __init__(self, explicit_fields: Iterable[str], metadata_prefix: str) -> None:
        """Initialize the translator.

        Args:
            explicit_fields: First-class field names that are never prefixed
            metadata_prefix: Prefix applied to all other fields
        """
        self.explicit_fields = frozenset(explicit_fields)
        self.metadata_prefix = metadata_prefix

    def field_name(self, field: str) -> str:
        """Map a logical field name to its physical Solr field name."""
        if field in self.explicit_fields or field.startswith(self.metadata_prefix):
            return field
        return f"{self.metadata_prefix}{field}"

    def translate(self, expression: str) -> str | None:
        """Translate a generic expression into a Solr filter query.

        Args:
            expression: Generic ``field == 'literal'`` expression

        Returns:
            Native ``field:value`` clause, or None when unparseable
        """
        parsed = parse_filter_expression(expression)
        if parsed is None:
            logger.warning(
                f"Ignoring unparseable filter expression {expression!r}: "
                f"only field == 'value' equality is supported"
            )
            return None
        return self.translate_expression(parsed)

    def translate_expression(self, parsed: FilterExpression) -> str:
        """Render an already-parsed expression as a Solr filter query."""
        return f"{self.field_name(parsed.field)}:{escape_query_chars(parsed.literal)}"
