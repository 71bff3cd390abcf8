"""Exception hierarchy for the workflow engine.

Handlers raise these internally; the node-executor boundary turns any of
them into a failed node result, so they never reach the coordinator loop.
"""


class WorkflowEngineError(Exception):
    """Base exception for the workflow engine."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DefinitionError(WorkflowEngineError):
    """A workflow definition is structurally invalid."""


class StorageError(WorkflowEngineError):
    """The record store failed to read or write."""


class EmailDeliveryError(WorkflowEngineError):
    """The email collaborator rejected or failed to send a message."""


class NotificationError(WorkflowEngineError):
    """A notification could not be created."""


class ExecutionNotFoundError(WorkflowEngineError):
    """An execution record does not exist."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution '{execution_id}' not found")


class RetryLimitExceededError(WorkflowEngineError):
    """A retry was requested beyond the definition's max_retries."""

    def __init__(self, execution_id: str, max_retries: int):
        self.execution_id = execution_id
        self.max_retries = max_retries
        super().__init__(
            f"Execution '{execution_id}' has reached the retry limit ({max_retries})"
        )
