"""
Application errors for clean API error handling.

Use ServiceUnavailableError when a dependency (vector store, embeddings, LLM)
is misconfigured or unreachable. ModelProviderError is fatal to an agent run;
the API maps it to a generic message so provider details never reach the user.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ModelProviderError(Exception):
    """Raised when the LLM call fails (timeout, auth, rate limit, missing key)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ToolArgumentError(Exception):
    """Raised when model-supplied tool arguments do not match the tool's schema."""

    def __init__(self, tool_name: str, detail: str) -> None:
        self.tool_name = tool_name
        self.detail = detail
        super().__init__(f"Invalid arguments for {tool_name}: {detail}")


class SessionStoreError(Exception):
    """Raised when session history cannot be read or written."""
