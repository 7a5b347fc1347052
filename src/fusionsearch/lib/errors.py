"""Custom exception hierarchy for fusionsearch configuration and retrieval."""


class FusionSearchError(Exception):
    """Base exception for all fusionsearch errors.

    All fusionsearch-specific exceptions inherit from this class, enabling
    centralized exception handling at the CLI and service boundaries.
    """

    pass


class ConfigError(FusionSearchError):
    """Exception raised for configuration errors.

    Raised when configuration loading, environment substitution or
    validation fails.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class ValidationError(FusionSearchError):
    """Exception raised when a request argument is invalid.

    Attributes:
        field: The argument that failed validation
        message: Description of the validation failure
        expected: Human description of expected value/type
        actual: The actual value that failed validation
    """

    def __init__(
        self,
        field: str,
        message: str,
        expected: str,
        actual: str,
    ) -> None:
        """Initialize ValidationError with detailed information.

        Args:
            field: Argument that failed validation
            message: Description of what went wrong
            expected: Human-readable description of expected value
            actual: The actual value that failed
        """
        self.field = field
        self.message = message
        self.expected = expected
        self.actual = actual
        full_message = (
            f"Validation error in '{field}': {message}\n"
            f"  Expected: {expected}\n"
            f"  Got: {actual}"
        )
        super().__init__(full_message)


class FileNotFoundError(FusionSearchError):
    """Exception raised when a configuration or input file is not found.

    Attributes:
        path: Path to the file that was not found
        message: Human-readable error message
    """

    def __init__(self, path: str, message: str) -> None:
        """Initialize FileNotFoundError with path and message.

        Args:
            path: Path to the file that was not found
            message: Descriptive error message, optionally with suggestions
        """
        self.path = path
        self.message = message
        super().__init__(f"File not found: {path}\n{message}")


class SolrError(FusionSearchError):
    """Base exception for failures talking to the Solr index.

    Both subclasses are transport/protocol errors: the retrieval
    orchestrator absorbs them per sub-search.
    """

    pass


class SolrConnectionError(SolrError):
    """Error raised when the Solr endpoint is unreachable or times out.

    Attributes:
        base_url: The Solr base URL that failed
    """

    def __init__(self, base_url: str, original_error: Exception | None = None) -> None:
        """Initialize SolrConnectionError with the endpoint and optional cause.

        Args:
            base_url: Solr base URL that failed to respond
            original_error: The underlying exception that caused the failure
        """
        self.base_url = base_url
        self.original_error = original_error
        message = (
            f"Failed to connect to Solr at {base_url}.\n"
            f"Check the Solr URL is correct and the server is running."
        )
        if original_error:
            message += f"\nOriginal error: {original_error}"
        super().__init__(message)


class SolrAPIError(SolrError):
    """Error raised when Solr answers with a non-2xx status code.

    Attributes:
        url: Request URL
        status_code: HTTP status code returned by Solr
        detail: Error message extracted from the Solr error body, if any
    """

    def __init__(self, url: str, status_code: int, detail: str | None = None) -> None:
        """Initialize SolrAPIError.

        Args:
            url: Request URL that failed
            status_code: HTTP status code
            detail: Optional error message from the response body
        """
        self.url = url
        self.status_code = status_code
        self.detail = detail
        message = f"Solr request to {url} failed with status {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class EmbeddingError(FusionSearchError):
    """Exception raised when the embedding service fails.

    Covers network, quota and provider errors. Never retried inline.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Create an embedding error.

        Args:
            message: Human-readable error message
            original_error: Provider exception that caused the failure
        """
        self.message = message
        self.original_error = original_error
        super().__init__(message)


class EmbeddingBatchMismatchError(EmbeddingError):
    """Data-integrity error: the service returned a different number of vectors.

    A mismatched batch would pair vectors with the wrong records, so it is
    always fatal and never truncated or padded.

    Attributes:
        expected: Number of texts sent
        actual: Number of vectors received
    """

    def __init__(self, expected: int, actual: int) -> None:
        """Initialize EmbeddingBatchMismatchError.

        Args:
            expected: Number of texts submitted for embedding
            actual: Number of vectors returned by the service
        """
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding batch size mismatch: sent {expected} texts, "
            f"received {actual} vectors"
        )


class SearchUnavailableError(FusionSearchError):
    """Raised when both the lexical and the vector sub-search failed.

    Attributes:
        collection: Collection that was searched
        lexical_error: Exception raised by the lexical sub-search
        vector_error: Exception raised by the vector sub-search
    """

    def __init__(
        self,
        collection: str,
        lexical_error: BaseException,
        vector_error: BaseException,
    ) -> None:
        """Create a total-failure error carrying both causes."""
        self.collection = collection
        self.lexical_error = lexical_error
        self.vector_error = vector_error
        super().__init__(
            f"Hybrid search on '{collection}' failed: "
            f"lexical search error: {_describe(lexical_error)}; "
            f"vector search error: {_describe(vector_error)}"
        )


def _describe(error: BaseException) -> str:
    text = str(error)
    return text if text else type(error).__name__
