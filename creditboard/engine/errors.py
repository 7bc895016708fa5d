"""Error taxonomy shared by the engines and the store adapters."""


class TaskNotFoundError(ValueError):
    """The target task does not exist in the store (or in the local snapshot)."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


class ValidationFailure(ValueError):
    """Caller input rejected before any store call was issued."""


class InvalidTransitionError(ValidationFailure):
    """Requested lifecycle transition is not allowed from the task's current state."""

    def __init__(self, task_id: str, state: str, action: str):
        super().__init__(f"Cannot {action} task {task_id} in state '{state}'")
        self.task_id = task_id
        self.state = state
        self.action = action


class TransientStoreError(RuntimeError):
    """Store or network failure; resolved by local rollback, never retried."""
