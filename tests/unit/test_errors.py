"""Tests for the fusionsearch exception hierarchy."""

from fusionsearch.lib.errors import (
    ConfigError,
    EmbeddingBatchMismatchError,
    EmbeddingError,
    FileNotFoundError,
    FusionSearchError,
    SearchUnavailableError,
    SolrAPIError,
    SolrConnectionError,
    SolrError,
    ValidationError,
)


class TestFusionSearchError:
    """Tests for the base exception."""

    def test_all_errors_inherit_from_base(self) -> None:
        """Test every custom error is a FusionSearchError."""
        for error_cls in (
            ConfigError,
            ValidationError,
            FileNotFoundError,
            SolrError,
            EmbeddingError,
            SearchUnavailableError,
        ):
            assert issubclass(error_cls, FusionSearchError)

    def test_solr_errors_share_base(self) -> None:
        """Test transport errors are grouped under SolrError."""
        assert issubclass(SolrConnectionError, SolrError)
        assert issubclass(SolrAPIError, SolrError)

    def test_batch_mismatch_is_embedding_error(self) -> None:
        """Test the mismatch error specializes EmbeddingError."""
        assert issubclass(EmbeddingBatchMismatchError, EmbeddingError)


class TestConfigError:
    """Tests for ConfigError."""

    def test_message_format(self) -> None:
        """Test the field name is included in the message."""
        error = ConfigError("search.rrf_k", "must be positive")

        assert str(error) == "Configuration error in 'search.rrf_k': must be positive"
        assert error.field == "search.rrf_k"
        assert error.message == "must be positive"


class TestValidationError:
    """Tests for ValidationError."""

    def test_message_includes_expected_and_actual(self) -> None:
        """Test the message lists expected and actual values."""
        error = ValidationError("top_k", "top_k must be positive", "> 0", "0")

        message = str(error)
        assert "Validation error in 'top_k'" in message
        assert "Expected: > 0" in message
        assert "Got: 0" in message


class TestFileNotFoundError:
    """Tests for FileNotFoundError."""

    def test_message_includes_path(self) -> None:
        """Test the path is part of the message."""
        error = FileNotFoundError("/tmp/missing.yaml", "Check the path")

        assert "File not found: /tmp/missing.yaml" in str(error)
        assert error.path == "/tmp/missing.yaml"


class TestSolrErrors:
    """Tests for Solr transport errors."""

    def test_connection_error_with_cause(self) -> None:
        """Test the original error is kept and described."""
        cause = OSError("connection refused")
        error = SolrConnectionError("http://localhost:8983/solr", original_error=cause)

        assert "Failed to connect to Solr at http://localhost:8983/solr" in str(error)
        assert "connection refused" in str(error)
        assert error.original_error is cause

    def test_api_error_with_detail(self) -> None:
        """Test the Solr error detail is appended."""
        error = SolrAPIError("http://solr/a/select", 400, "undefined field title")

        assert str(error) == (
            "Solr request to http://solr/a/select failed with status 400: "
            "undefined field title"
        )

    def test_api_error_without_detail(self) -> None:
        """Test the message without detail."""
        assert str(SolrAPIError("http://solr/a/select", 502)).endswith("status 502")


class TestEmbeddingErrors:
    """Tests for embedding errors."""

    def test_batch_mismatch_message(self) -> None:
        """Test counts are reported."""
        error = EmbeddingBatchMismatchError(3, 2)

        assert str(error) == (
            "Embedding batch size mismatch: sent 3 texts, received 2 vectors"
        )
        assert (error.expected, error.actual) == (3, 2)


class TestSearchUnavailableError:
    """Tests for SearchUnavailableError."""

    def test_carries_both_causes(self) -> None:
        """Test both sub-search errors are attached and described."""
        lexical = SolrAPIError("http://solr/a/select", 500)
        vector = TimeoutError()

        error = SearchUnavailableError("articles", lexical, vector)

        assert error.lexical_error is lexical
        assert error.vector_error is vector
        assert "lexical search error: Solr request" in str(error)
        assert "vector search error: TimeoutError" in str(error)
