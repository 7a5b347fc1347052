"""Boundary types for natural-language to Solr query generation.

An external language model can turn a free-text question into a structured
Solr query (main query, filter clauses, facets). fusionsearch does not call
any model itself; it accepts any object implementing QueryGenerator and
uses the generated query for the lexical leg of a hybrid search.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fusionsearch.lib.field_schema import FieldInfo

MATCH_ALL_QUERY = "*:*"


class QueryGenerationResponse(BaseModel):
    """Structured Solr query produced from natural language.

    Filter clauses are native Solr syntax and may use ranges
    (``year:[2020 TO *]``) or boolean operators.
    """

    model_config = ConfigDict(extra="ignore")

    q: str = Field(default=MATCH_ALL_QUERY, description="Main query")
    fq: list[str] = Field(default_factory=list, description="Filter clauses")
    sort: str | None = Field(None, description="Sort specification")
    fl: list[str] | None = Field(None, description="Fields to return")
    facet_fields: list[str] = Field(default_factory=list)
    facet_query: list[str] = Field(default_factory=list)

    @field_validator("fq", "facet_fields", "facet_query", mode="before")
    @classmethod
    def coerce_list(cls, v: object) -> object:
        """Accept a single string where a list is expected."""
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v

    @property
    def has_text_query(self) -> bool:
        """Whether the generated main query constrains anything."""
        return bool(self.q.strip()) and self.q.strip() != MATCH_ALL_QUERY


@runtime_checkable
class QueryGenerator(Protocol):
    """Protocol for natural-language query generators."""

    async def generate(
        self, query_text: str, fields: Sequence[FieldInfo]
    ) -> QueryGenerationResponse:
        """Translate a question into a structured Solr query.

        Args:
            query_text: The user's free-text question
            fields: Populated fields of the collection with schema details

        Returns:
            Generated query
        """
        ...


def build_filter_query(clauses: Sequence[str]) -> str | None:
    """Combine generated filter clauses into a single fq with AND.

    Clauses are parenthesized when there is more than one so that an OR
    inside a clause keeps its meaning.

    Example:
        >>> build_filter_query(["genre:jazz", "year:[2020 TO *]"])
        '(genre:jazz) AND (year:[2020 TO *])'
        >>> build_filter_query([]) is None
        True
    """
    parts = [clause.strip() for clause in clauses if clause and clause.strip()]
    if not parts:
        return None
    if len(parts) == 1:
        return parts[0]
    return " AND ".join(f"({part})" for part in parts)
