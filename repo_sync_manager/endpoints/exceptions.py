"""Contains exceptions raised by repository endpoints."""


class EndpointError(Exception):
    """Raised when a platform rejects a request in a way the caller should report."""

    pass


class ProtectedBranchError(EndpointError):
    """Raised when the target refuses to move a protected branch."""

    def __init__(self, branch: str, detail: str = "") -> None:
        """Initializes the exception with the refused branch."""
        super().__init__(f"Branch {branch!r} is protected on the target" + (f": {detail}" if detail else ""))
        self.branch = branch
