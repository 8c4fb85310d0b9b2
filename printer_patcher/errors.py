"""Error taxonomy shared by sources, the GitHub client and the engine."""


class PatcherError(Exception):
    """Base class for all printer-patcher errors."""


class NotFoundError(PatcherError):
    """A named local resource or action does not exist."""


class CatalogParseError(PatcherError):
    """Catalog content could not be parsed into the action schema."""


class UpstreamError(PatcherError):
    """GitHub API or raw-content request failed.

    Carries the failing URL and, when known, the repository path and the
    HTTP status code.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
    ):
        self.url = url
        self.path = path
        self.status_code = status_code
        super().__init__(message)


class InvalidSourceError(PatcherError):
    """Operation requested against an incompatible source kind."""


class SSHConnectionError(PatcherError):
    """Raised when the SSH session to the target device cannot be opened.

    Typical causes:
    - Device unreachable or powered off
    - Connection refused (sshd not running)
    - Authentication rejected
    """

    def __init__(self, host: str, message: str, suggestion: str | None = None):
        self.host = host
        self.suggestion = suggestion
        super().__init__(message)


class StepExecutionError(PatcherError):
    """The remote command for a step could not be executed."""

    def __init__(self, step_title: str, message: str):
        self.step_title = step_title
        super().__init__(message)


class ValidationFailure(PatcherError):
    """A step ran but its output did not match the expected pattern."""

    def __init__(self, step_title: str, expected: str, actual: str):
        self.step_title = step_title
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Step '{step_title}' failed validation. "
            f"Expected: '{expected}', Got: '{actual}'"
        )
