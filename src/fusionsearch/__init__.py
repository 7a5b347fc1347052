"""fusionsearch - Hybrid lexical and vector retrieval over Apache Solr.

fusionsearch runs a keyword (edismax) query and a dense-vector (knn) query
against the same Solr collection, merges both rankings with Reciprocal Rank
Fusion and degrades gracefully when either side comes back empty.

Main features:
- Concurrent lexical and vector sub-searches with per-leg deadlines
- Reciprocal Rank Fusion with deterministic tie-breaking
- HYBRID -> LEXICAL_ONLY -> VECTOR_ONLY -> EMPTY fallback chain
- Query shapes adapted to the fields a collection actually holds
- Embedding generation through Semantic Kernel text embedding services
- OpenTelemetry spans around every search stage
"""

from fusionsearch.config.loader import ConfigLoader
from fusionsearch.lib.errors import ConfigError, FusionSearchError, ValidationError

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigLoader",
    "ConfigError",
    "FusionSearchError",
    "ValidationError",
]
