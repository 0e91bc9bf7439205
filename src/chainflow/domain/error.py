"""Error taxonomy for workflow definition checks and step execution."""


class WorkflowError(Exception):
    """Base exception for all workflow engine errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(WorkflowError):
    """A step's required sub-configuration is absent or contradictory."""


class ResolutionError(WorkflowError):
    """An expression references a path that does not exist in the context."""

    def __init__(self, expression: str, message: str | None = None, cause: Exception | None = None):
        super().__init__(message or f"Cannot resolve expression '{expression}'", cause)
        self.expression = expression


class MissingArgumentError(ResolutionError):
    """An ABI parameter has no corresponding value in the argument mapping."""

    def __init__(self, parameter: str, function: str | None = None):
        where = f" for function '{function}'" if function else ""
        super().__init__(parameter, f"Missing argument: {parameter}{where}")
        self.parameter = parameter


class ValidationError(WorkflowError):
    """A workflow definition or its input failed static checks."""

    def __init__(self, errors: list[str], prefix: str = "Invalid workflow"):
        super().__init__(f"{prefix}: " + "; ".join(errors))
        self.errors = list(errors)


class EncodingError(WorkflowError):
    """Calldata could not be built or encoded."""


class InvalidTargetError(EncodingError):
    """A call target did not resolve to a 20-byte hex address."""

    def __init__(self, expression: str, resolved: object):
        super().__init__(f"Invalid target address: {expression} resolved to {resolved!r}")
        self.expression = expression
        self.resolved = resolved


class ExternalCallError(WorkflowError):
    """An HTTP request returned a non-2xx status or a transaction submission failed."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, cause)
        self.status = status
        self.body = body


class PermissionDeniedError(WorkflowError):
    """A call target was rejected by the session's external allow-list."""

    def __init__(self, message: str, target: str | None = None, operation: str | None = None, cause: Exception | None = None):
        super().__init__(message, cause)
        self.target = target
        self.operation = operation
