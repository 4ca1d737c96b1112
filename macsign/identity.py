"""Signing identity discovery and resolution."""

import logging
import re
from typing import Callable

from .errors import CommandError, IdentityResolutionError
from .process import run_command
from .request import (
    PLATFORM_MAS,
    TYPE_DISTRIBUTION,
    SigningRequest,
)

# Search terms for each kind of certificate
MAS_DISTRIBUTION_PATTERN = "3rd Party Mac Developer Application:"
MAS_DEVELOPMENT_PATTERN = "Mac Developer:"
DEVELOPER_ID_PATTERN = "Developer ID Application:"

# Line format: '  1) 0123...CDEF "Developer ID Application: Name (TEAMID)"'
IDENTITY_LINE_PATTERN = re.compile(
    r'^\s*\d+\)\s+(?P<hash>[0-9A-Fa-f]{40})\s+"(?P<name>.+)"'
)


def team_id_from_name(name: str) -> str | None:
    """Return the team identifier in parentheses in an identity name.

    Example:
        >>> team_id_from_name("Developer ID Application: Jo Doe (AB12CD34EF)")
        'AB12CD34EF'
    """
    start = name.find("(")
    end = name.rfind(")")
    if start < 0 or end <= start:
        return None
    return name[start + 1 : end]


class Identity:
    """A code signing identity listed in a keychain."""

    def __init__(self, name: str, hash: str):
        self.name = name
        self.hash = hash

    @property
    def team_id(self) -> str | None:
        return team_id_from_name(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Identity):
            return NotImplemented
        return self.name == other.name and self.hash == other.hash

    def __hash__(self) -> int:
        return hash((self.name, self.hash))

    def __repr__(self) -> str:
        return f"Identity({self.name!r}, {self.hash!r})"


def parse_identities(output: str, search: str) -> list[Identity]:
    """Parse ``security find-identity`` output.

    Args:
        output: The tool's standard output
        search: Substring each listing line must contain; matching the
            whole line lets a certificate hash be used as search term

    Returns:
        Matching identities in listing order
    """
    identities = []
    for line in output.splitlines():
        if search not in line:
            continue
        match = IDENTITY_LINE_PATTERN.match(line)
        if match:
            identity = Identity(match.group("name"), match.group("hash"))
            identities.append(identity)
    return identities


def find_identities(
    search: str,
    keychain: str | None = None,
    log: logging.Logger | None = None,
) -> list[Identity]:
    """Query the keychain for valid code signing identities.

    Only valid identities are listed, which excludes expired and
    untrusted certificates.

    Args:
        search: Substring to look for (name, name prefix or hash)
        keychain: Optional keychain to search instead of the default list
        log: Optional logger

    Returns:
        Matching identities in the order the keychain reports them

    Raises:
        CommandError: If security fails
    """
    command = ["security", "find-identity", "-v", "-p", "codesigning"]
    if keychain:
        command.append(keychain)
    output = run_command(command, log=log)
    identities = parse_identities(output, search)
    if log:
        for identity in identities:
            log.debug("Identity: %s (%s)", identity.name, identity.hash)
    return identities


IdentityFinder = Callable[..., list[Identity]]


class IdentityResolver:
    """Turns a request's identity or certificate type into one identity.

    Args:
        finder: Identity store query, called as
            ``finder(search, keychain=..., log=...)`` and returning
            Identity objects or identity name strings
        log: Optional logger (default: the request's logger)
    """

    def __init__(
        self,
        finder: IdentityFinder = find_identities,
        log: logging.Logger | None = None,
    ) -> None:
        self.finder = finder
        self.log = log

    @staticmethod
    def search_term(request: SigningRequest) -> str:
        """Return the identity search term for a request."""
        if request.identity:
            return request.identity
        if request.platform == PLATFORM_MAS:
            if request.signing_type == TYPE_DISTRIBUTION:
                return MAS_DISTRIBUTION_PATTERN
            return MAS_DEVELOPMENT_PATTERN
        return DEVELOPER_ID_PATTERN

    def resolve(self, request: SigningRequest) -> str:
        """Resolve the signing identity and store it in the request.

        When several identities match, the first one in the keychain's
        order is used. That order is not guaranteed to be stable, so a
        specific identity should be passed explicitly.

        Returns:
            The identity name

        Raises:
            IdentityResolutionError: If no identity matches
        """
        log = self.log or request.log.getChild("identity")
        search = self.search_term(request)
        if request.identity:
            log.debug("`identity` passed in arguments.")
        else:
            log.warning(
                "No `identity` passed in arguments, searching for %r...",
                search,
            )

        try:
            identities = self.finder(search, keychain=request.keychain, log=log)
        except CommandError as e:
            raise IdentityResolutionError(
                f"Failed to list signing identities: {e.output or e}"
            ) from e

        if not identities:
            raise IdentityResolutionError("No identity found for signing.")
        if len(identities) > 1:
            log.warning(
                "Multiple identities found, will use the first discovered."
            )
        else:
            log.debug("Found 1 identity.")

        first = identities[0]
        request.identity = (
            first.name if isinstance(first, Identity) else str(first)
        )
        return request.identity
