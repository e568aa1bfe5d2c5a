"""Exception hierarchy for the commissioner"""


class CommissionerError(Exception):
    """Base class for all commissioner errors"""


class ConfigurationError(CommissionerError):
    """Account or credential data needed to run a subtask is missing or malformed"""


class CommandExecutionError(CommissionerError):
    """External command returned a non-zero status or a malformed response"""

    def __init__(self, message: str, code: int = -1):
        super().__init__(message)
        self.message = message
        self.code = code


class InvalidTransitionError(CommissionerError):
    """Requested task state change is not allowed by the lifecycle"""

    def __init__(self, from_state, to_state):
        super().__init__(f"Invalid task state transition: {from_state.value} -> {to_state.value}")
        self.from_state = from_state
        self.to_state = to_state


class TaskNotFoundError(CommissionerError):
    """No task with the given uuid"""

    def __init__(self, task_uuid):
        super().__init__(f"Task {task_uuid} not found")
        self.task_uuid = task_uuid
