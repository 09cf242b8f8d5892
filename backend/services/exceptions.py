class InvalidInputError(ValueError):
    """Malformed request data; raised before any partial computation."""


class RequestNotFoundError(LookupError):
    pass


class InvalidTransitionError(Exception):
    """Illegal status move, or the expected status changed underneath us."""

    def __init__(self, request_id: str, current, target):
        self.request_id = request_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot move request {request_id} from {current} to {target}")
