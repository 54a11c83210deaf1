class NodeCyclerError(Exception):
    """Base exception for nodecycler."""

    pass


class ConfigurationError(NodeCyclerError):
    """Raised when flags or settings are invalid, before any cycling starts."""

    pass


class UnrecoverableError(NodeCyclerError):
    """Base exception for every failure that aborts a cycling run."""

    pass


class RetryExhaustedError(UnrecoverableError):
    """Raised when an external call keeps failing after the last allowed attempt."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"'{operation}' failed after {attempts} attempts: {last_error}")


class PreconditionError(UnrecoverableError):
    """Raised when the cluster or fleet is not in the shape required to proceed."""

    pass


class InvalidGroupSizeError(PreconditionError):
    """Raised when an instance group reports a missing, non-numeric or zero target size."""

    pass


class ZoneImbalanceError(PreconditionError):
    """Raised when nodes of a role are not evenly spread across exactly three zones."""

    def __init__(self, distribution: dict):
        self.distribution = dict(distribution)
        super().__init__(f"Nodes are not balanced across 3 zones: {self.distribution}")


class UnrecognizedCreatedByError(UnrecoverableError):
    """Raised when an instance's 'created-by' metadata does not name an instance group manager."""

    pass


class ConvergenceTimeoutError(UnrecoverableError):
    """Raised when a convergence wait runs past its configured deadline."""

    pass


class CyclingError(UnrecoverableError):
    """Wraps a failure with the role and cycle state it happened in."""

    def __init__(self, role, state, cause: BaseException):
        self.role = role
        self.state = state
        self.cause = cause
        role_name = getattr(role, "value", role)
        state_name = getattr(state, "value", state)
        super().__init__(f"Cycling of role '{role_name}' failed in state '{state_name}': {cause}")
