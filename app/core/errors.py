"""
Application errors for clean API error handling.

Use ServiceUnavailableError when a dependency (Temporal, Redis) is misconfigured
or unreachable so the API can return a user-facing message instead of a 500.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. Temporal client) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConversationNotFoundError(Exception):
    """Raised by services when a conversation id does not exist in either bucket."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class WorkflowTimeoutError(Exception):
    """Raised when a chat workflow does not return a result before the deadline."""

    def __init__(self, timeout_ms: int, task_queue: str, workflow_name: str) -> None:
        self.timeout_ms = timeout_ms
        self.task_queue = task_queue
        self.workflow_name = workflow_name
        super().__init__(
            f"Workflow did not complete within {timeout_ms / 1000:g}s. "
            f'Ensure a Worker is running on task queue "{task_queue}" with workflow "{workflow_name}".'
        )
