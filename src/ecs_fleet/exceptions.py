"""Errors raised while reconciling or scaling instances.

Remote call failures are not wrapped: botocore's ClientError reaches callers
as raised by the client.
"""


class FleetError(Exception):
    """Base class for fleet errors."""
    pass


class NotFoundError(FleetError):
    """A remote resource an operation depends on does not exist."""
    pass


class AmbiguousError(FleetError):
    """A lookup expected to match one resource matched several."""
    pass


class ServiceNotFoundError(NotFoundError):
    def __init__(self, service: str):
        self.service = service
        super().__init__(f"service not found with name {service}")


class AmbiguousServiceError(AmbiguousError):
    def __init__(self, service: str, count: int):
        self.service = service
        self.count = count
        super().__init__(f"too many services returned for {service} ({count})")


class EventTargetNotFoundError(NotFoundError):
    def __init__(self, rule: str, detail: str = ""):
        self.rule = rule
        message = f"event target not found for rule {rule}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AmbiguousTargetError(AmbiguousError):
    def __init__(self, rule: str, count: int):
        self.rule = rule
        self.count = count
        super().__init__(f"rule {rule} has {count} targets, expected exactly one")


class TaskFailureError(FleetError):
    """Tasks of a service stopped for reasons other than a user request.

    Stored on the instance state rather than raised.
    """

    def __init__(self, count: int, reason: str):
        self.count = count
        self.reason = reason
        super().__init__(f"{count} failed task(s) ({reason})")


class MissingIdentityError(RuntimeError):
    """A mutating operation was called without an acting user."""
    pass
