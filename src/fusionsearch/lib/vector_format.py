"""Conversion between embedding vectors and the Solr wire representation.

Solr's knn query parser expects the query vector as a bracketed,
comma-separated list of floats (``[0.1, -0.2, 0.3]``). Stored dense vector
fields come back as JSON arrays whose elements may be a mix of ints and
floats (``[0, 0.5, 1]``), or occasionally as the bracketed string itself.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any


def format_vector(vector: Sequence[float]) -> str:
    """Render a vector as a Solr knn literal.

    Args:
        vector: Numeric vector

    Returns:
        Bracketed, comma-separated float literal

    Raises:
        ValueError: If the vector is empty or holds a non-finite value

    Example:
        >>> format_vector([0.1, 2, -0.5])
        '[0.1, 2.0, -0.5]'
    """
    if not vector:
        raise ValueError("Cannot format an empty vector")

    parts: list[str] = []
    for value in vector:
        number = float(value)
        if not math.isfinite(number):
            raise ValueError(f"Vector contains a non-finite value: {value!r}")
        parts.append(repr(number))
    return "[" + ", ".join(parts) + "]"


def parse_vector(raw: Any) -> list[float]:
    """Parse a vector returned by Solr back into floats.

    Accepts a list of ints, floats or numeric strings, or the bracketed
    string form produced by :func:`format_vector`.

    Args:
        raw: Value of a vector field from a Solr response

    Returns:
        List of floats

    Raises:
        ValueError: If the value cannot be interpreted as a numeric vector

    Example:
        >>> parse_vector([0, 0.5, 1])
        [0.0, 0.5, 1.0]
        >>> parse_vector("[0.25, 1]")
        [0.25, 1.0]
    """
    if isinstance(raw, str):
        text = raw.strip()
        if not (text.startswith("[") and text.endswith("]")):
            raise ValueError(f"Not a vector literal: {raw!r}")
        body = text[1:-1].strip()
        items: Sequence[Any] = body.split(",") if body else []
    elif isinstance(raw, (list, tuple)):
        items = raw
    else:
        raise ValueError(f"Unsupported vector representation: {type(raw).__name__}")

    vector: list[float] = []
    for item in items:
        if isinstance(item, bool):
            raise ValueError(f"Vector element is not numeric: {item!r}")
        try:
            number = float(item.strip() if isinstance(item, str) else item)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Vector element is not numeric: {item!r}") from e
        if not math.isfinite(number):
            raise ValueError(f"Vector contains a non-finite value: {item!r}")
        vector.append(number)
    return vector
