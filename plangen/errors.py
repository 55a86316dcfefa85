"""Errors raised while loading, validating and transforming workload models."""


class TransformationError(Exception):
    """A workload model could not be transformed into an execution plan."""


class UnknownRequestTypeError(TransformationError):
    """No request transformer is registered for a request variant."""

    def __init__(self, request_id, request_type):
        self.request_id = request_id
        self.request_type = request_type
        super().__init__(
            f"unknown request type {request_type.__name__} "
            f"detected for request with id {request_id}"
        )


class UnknownThinkTimeTypeError(TransformationError):
    """No think time formatter is registered for a think time variant."""

    def __init__(self, think_time_type):
        self.think_time_type = think_time_type
        super().__init__(f"unknown think time type detected: {think_time_type.__name__}")


class ModelParseError(ValueError):
    """Workload model document is malformed or has dangling references."""


class ValidationError(Exception):
    """Workload model failed structural validation."""

    def __init__(self, diagnostics):
        self.diagnostics = list(diagnostics)
        lines = [f"  {d.path}: {d.message}" for d in self.diagnostics]
        super().__init__("workload model is invalid:\n" + "\n".join(lines))


class MatrixWriteFailure(Exception):
    """A behavior model matrix could not be written; scoped to that model."""

    def __init__(self, model_name, path, reason):
        self.model_name = model_name
        self.path = path
        self.reason = reason
        super().__init__(
            f'Behavior Model "{model_name}" could not be written to file "{path}" ({reason})'
        )
