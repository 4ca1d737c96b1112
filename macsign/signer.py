"""Signing of an application bundle and the code nested inside it."""

import logging
from pathlib import Path
from typing import Callable

from .errors import CommandError, SigningError
from .process import run_command
from .request import SigningRequest, as_ignore_rule
from .walker import walk_bundle

BundleWalker = Callable[..., list[Path]]


class Codesigner:
    """Sign a bundle inside-out with a resolved identity.

    Signing order:
    1. Nested code discovered by the walker, innermost first
    2. Additional binaries from the request
    3. The bundle itself

    Nested code is signed with the inherit entitlements, the bundle with
    the root entitlements. The first failing codesign call stops the run.

    Args:
        request: A validated request with identity and entitlements resolved
        walker: Bundle walker, called as ``walker(contents_path, log)``
        log: Optional logger (default: the request's logger)

    Example:
        signer = Codesigner(request)
        signed = signer.process()
    """

    def __init__(
        self,
        request: SigningRequest,
        walker: BundleWalker = walk_bundle,
        log: logging.Logger | None = None,
    ) -> None:
        self.request = request
        self.walker = walker
        self.log = log or request.log.getChild(self.__class__.__name__)
        self.ignore = as_ignore_rule(request.ignore)

    def run_command(self, command: list[str]) -> str:
        return run_command(command, log=self.log)

    def base_command(self) -> list[str]:
        """The codesign command shared by every signed path."""
        command = ["codesign", "--sign", self.request.identity, "--force"]
        if self.request.keychain:
            command.extend(["--keychain", self.request.keychain])
        if self.request.requirements:
            command.extend(["--requirements", self.request.requirements])
        return command

    def collect(self) -> list[Path]:
        """Return nested code followed by the additional binaries."""
        contents = self.request.contents_path
        children = self.walker(contents, self.log) if contents.is_dir() else []
        return list(children) + list(self.request.binaries or [])

    def is_ignored(self, path: Path) -> bool:
        return self.ignore is not None and self.ignore.matches(path)

    def sign_path(self, path: Path, entitlements: Path | None = None) -> None:
        """Sign one path.

        Raises:
            SigningError: If codesign fails, with its diagnostics
        """
        command = self.base_command()
        if entitlements:
            command.extend(["--entitlements", str(entitlements)])
        command.append(str(path))
        self.log.info("Signing... %s", path)
        try:
            self.run_command(command)
        except CommandError as e:
            raise SigningError(path, e.output) from e

    def process(self) -> list[Path]:
        """Sign all nested code, then the bundle.

        Returns:
            The signed paths in signing order, the bundle last
        """
        child_entitlements = None
        if self.request.entitlements.is_set:
            child_entitlements = self.request.entitlements_inherit

        signed = []
        for path in self.collect():
            if self.is_ignored(path):
                self.log.info("Skipped... %s", path)
                continue
            self.sign_path(path, child_entitlements)
            signed.append(path)

        self.sign_path(self.request.app, self.request.entitlements_path)
        signed.append(self.request.app)
        return signed
