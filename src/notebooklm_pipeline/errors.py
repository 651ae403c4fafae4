"""Exception types raised by the NotebookLM client and the pipeline."""


class NotebookLMError(Exception):
    """Base class for every error raised by this package."""
    pass


class AuthenticationError(NotebookLMError):
    """Raised when authentication fails (HTTP 401/403 or RPC Error 16)."""
    pass


class AuthRequired(AuthenticationError):
    """The cookies do not belong to a signed-in session (redirected to login)."""
    pass


class AuthExpired(AuthenticationError):
    """Credentials were rejected mid-session. The token cache has been invalidated."""
    pass


class RateLimited(NotebookLMError):
    """NotebookLM refused the call because of a rate limit or quota."""
    pass


class TransportError(NotebookLMError):
    """Non-2xx HTTP response (other than 401/403) or a network failure."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class ProtocolDecodeError(NotebookLMError):
    """A response or page did not have the expected shape."""
    pass


class NoResult(ProtocolDecodeError):
    """The response carried no frame for the requested RPC."""

    def __init__(self, method_id: str):
        super().__init__(f"No result found for RPC ID: {method_id}")
        self.method_id = method_id


class RpcError(NotebookLMError):
    """The service returned an error frame for the requested RPC."""

    def __init__(self, method_id: str, code):
        super().__init__(f"RPC error for {method_id}: code={code}")
        self.method_id = method_id
        self.code = code


class SourceProcessingError(NotebookLMError):
    """A source failed ingestion or could not be registered."""
    pass


class ArtifactGenerationError(NotebookLMError):
    """An artifact failed to generate."""
    pass


class PhaseTimeout(NotebookLMError):
    """A polling phase ran past its timeout."""

    def __init__(self, phase: str, message: str | None = None):
        super().__init__(message or f"Phase '{phase}' timed out")
        self.phase = phase


class AbortedByUser(NotebookLMError):
    """Raised by bounded waiters when the cancellation predicate fires."""

    def __init__(self, message: str = "Pipeline monitoring aborted by user"):
        super().__init__(message)
