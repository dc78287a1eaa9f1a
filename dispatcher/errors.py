"""Shared error types for the dispatcher package.

Adapter-boundary errors (configuration, availability, execution, timeout)
are converted into failed results or ``error`` stream events and never
escape an adapter. Lookup errors are raised to the caller.
"""


class DispatchError(Exception):
    """Base exception for dispatcher errors.

    Use this for user-facing errors that should have actionable messages.
    """

    pass


class ConfigurationError(DispatchError):
    """Tool has neither a runnable command nor an endpoint configured."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"Tool {tool} is not configured")
        self.tool = tool


class AvailabilityError(DispatchError):
    """Tool probe failed or timed out."""

    def __init__(self, tool: str) -> None:
        super().__init__(f'Tool "{tool}" is not available')
        self.tool = tool


class ExecutionError(DispatchError):
    """Backend exited non-zero, returned non-2xx, or raised while invoked."""

    pass


class ExecutionTimeoutError(ExecutionError):
    """Wall-clock ceiling exceeded before the backend finished."""

    def __init__(self, tool: str, timeout: float) -> None:
        super().__init__(f"{tool} timed out after {timeout:g}s")
        self.tool = tool
        self.timeout = timeout


class NotFoundError(DispatchError):
    """Unknown session id or tool name."""

    pass


class SessionStateError(DispatchError):
    """Operation not permitted in the session's current state."""

    pass
