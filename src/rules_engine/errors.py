"""Error taxonomy for workflow building and execution."""

from __future__ import annotations


class RulesEngineError(Exception):
    pass


class EngineConfigurationError(RulesEngineError, ValueError):
    """Raised when the engine is constructed with invalid arguments."""


class InvalidRequest(RulesEngineError, ValueError):
    """The context used to build or run a workflow is missing required fields."""


class UnknownVerb(RulesEngineError, ValueError):
    def __init__(self, verb: object) -> None:
        super().__init__(f"Invalid verb {verb}")
        self.verb = verb


class MalformedPrerequisite(RulesEngineError, ValueError):
    def __init__(self, index: int, rule_name: str) -> None:
        super().__init__(
            f"Prerequisite {index} for rule {rule_name} should have a 'context' object, "
            "with a 'verb' property."
        )
        self.index = index
        self.rule_name = rule_name


class WorkflowCycleError(RulesEngineError):
    """Prerequisite expansion re-entered a context already being expanded."""

    def __init__(self, message: str, path: tuple[str, ...]) -> None:
        super().__init__(message)
        self.path = path


class HumanizedError(RulesEngineError):
    """An error that prefixes a human readable message to an underlying cause.

    The cause is chained through ``__cause__`` so its traceback stays available.
    """

    def __init__(self, message: str, cause: BaseException) -> None:
        super().__init__(f"{message} - {cause}")
        self.__cause__ = cause


class StepFailure(HumanizedError):
    def __init__(self, step_name: str, cause: BaseException) -> None:
        super().__init__(f"{step_name} failed.", cause)
        self.step_name = step_name


class DispatchFailure(HumanizedError):
    """A completion dispatch raised. Logged by the executor, never re-raised."""


class RecoveryContractViolation(RulesEngineError):
    def __init__(self, step_name: str) -> None:
        super().__init__(f"'{step_name}.on_error' should either raise an error, or produce a result")
        self.step_name = step_name
