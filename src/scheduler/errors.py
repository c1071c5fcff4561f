from typing import Any, Optional


class JobValidationError(ValueError):
    """A scheduling request violates a precondition; nothing was registered."""


class InvalidJobNameError(JobValidationError):
    pass


class DuplicateJobError(JobValidationError):
    def __init__(self, name: str):
        super().__init__(f"Job with name '{name}' already exists")
        self.name = name


class JobLimitError(JobValidationError):
    pass


class InvalidTokenError(JobValidationError):
    def __init__(self, message: str, token: Optional[Any] = None):
        super().__init__(message)
        self.token = token


class InvalidTriggerError(JobValidationError):
    pass
