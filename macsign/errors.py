"""Exception hierarchy for macsign.

Every failure raised by the signing pipeline derives from SignError, so
callers can catch one type at the boundary (the CLI does exactly that).
"""


class SignError(Exception):
    """Base exception class for macsign errors."""


class CommandError(SignError):
    """Exception raised when an external command fails."""

    def __init__(
        self, command: str, returncode: int, output: str | None = None
    ):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{command}' failed with return code {returncode}"
        )


class ConfigurationError(SignError):
    """Exception raised when configuration is invalid."""


class ValidationError(SignError):
    """Exception raised when a signing request is malformed."""


class IdentityResolutionError(SignError):
    """Exception raised when no signing identity can be determined."""


class PreSignError(SignError):
    """Exception raised when a pre-sign operation fails."""

    def __init__(self, stage: str, message: str):
        self.stage = stage
        super().__init__(f"Pre-sign operation '{stage}' failed: {message}")


class SigningError(SignError):
    """Exception raised when codesign fails on a path."""

    def __init__(self, path: object, output: str | None = None):
        self.path = path
        self.output = output
        message = f"Failed to sign {path}"
        if output:
            message = f"{message}: {output.strip()}"
        super().__init__(message)


class VerificationError(SignError):
    """Exception raised when a signed bundle fails verification.

    Attributes:
        check: "structure" when codesign rejects the signature,
            "gatekeeper" when spctl rejects the bundle for execution.
    """

    STRUCTURE = "structure"
    GATEKEEPER = "gatekeeper"

    def __init__(self, check: str, message: str):
        self.check = check
        super().__init__(message)
