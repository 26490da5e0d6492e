"""Exception hierarchy for terminal-ai."""


class TermAIError(Exception):
    """Base class for all terminal-ai errors."""


class ProviderError(TermAIError):
    """A backend request, authentication or stream failure."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        self.message = message
        super().__init__(f"{provider} request failed: {message}")


class CompletionCancelled(TermAIError):
    """The streaming completion was cancelled by the user."""

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)


class ToolDispatchError(TermAIError):
    """A tool call could not be executed."""


class UnknownToolError(ToolDispatchError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class DuplicateToolError(TermAIError):
    """A tool name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool already registered: {name}")


class PersistenceError(TermAIError):
    """The conversation store could not be read or written."""


class ThreadNotFoundError(PersistenceError):
    """No thread exists with the given id."""

    def __init__(self, thread_id: str):
        self.thread_id = thread_id
        super().__init__(f"Thread with ID {thread_id} not found")
