"""Verification of a signed application bundle."""

import logging

from .errors import CommandError, VerificationError
from .process import run_command
from .request import PLATFORM_DARWIN, SigningRequest


class Verifier:
    """Check a signed bundle with codesign and, for darwin, Gatekeeper.

    Args:
        request: The request of the completed signing run
        log: Optional logger (default: the request's logger)
    """

    def __init__(
        self, request: SigningRequest, log: logging.Logger | None = None
    ) -> None:
        self.request = request
        self.log = log or request.log.getChild(self.__class__.__name__)

    def run_command(self, command: list[str]) -> str:
        return run_command(command, log=self.log)

    def verify_structure(self) -> None:
        """Deep, strict structural verification of the signature."""
        self.log.info("Verifying application bundle with codesign...")
        try:
            self.run_command(
                [
                    "codesign",
                    "--verify",
                    "--deep",
                    "--strict",
                    "--verbose=2",
                    str(self.request.app),
                ]
            )
        except CommandError as e:
            self.log.error("%s", e.output or e)
            raise VerificationError(
                VerificationError.STRUCTURE,
                f"Failed to verify application bundle: {self.request.app}",
            ) from e

    def assess_gatekeeper(self) -> None:
        """Check that Gatekeeper would allow the bundle to run."""
        self.log.info("Verifying Gatekeeper acceptance...")
        try:
            self.run_command(
                [
                    "spctl",
                    "--assess",
                    "--type",
                    "execute",
                    "--verbose",
                    "--ignore-cache",
                    "--no-cache",
                    str(self.request.app),
                ]
            )
        except CommandError as e:
            self.log.error("%s", e.output or e)
            raise VerificationError(
                VerificationError.GATEKEEPER,
                f"Failed to pass Gatekeeper: {self.request.app}",
            ) from e

    def display_entitlements(self) -> str | None:
        """Log the entitlements embedded in the signature.

        Returns:
            The entitlements output, or None if they could not be shown
        """
        try:
            output = self.run_command(
                [
                    "codesign",
                    "--display",
                    "--entitlements",
                    "-",
                    str(self.request.app),
                ]
            )
        except CommandError as e:
            self.log.warning("Failed to display entitlements: %s", e)
            return None
        self.log.debug("Entitlements (prefixed with blob header):\n%s", output)
        return output

    def process(self) -> None:
        """Run every applicable check.

        Raises:
            VerificationError: If the signature or Gatekeeper check fails
        """
        self.verify_structure()
        if self.request.platform == PLATFORM_DARWIN:
            self.assess_gatekeeper()
        self.log.info("Verified.")
        if self.request.entitlements.is_set:
            self.display_entitlements()
