"""The signing request threaded through every stage of the pipeline."""

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Callable

from .errors import ValidationError

# Type aliases
Pathlike = Path | str

PLATFORM_DARWIN = "darwin"
PLATFORM_MAS = "mas"
PLATFORMS = (PLATFORM_DARWIN, PLATFORM_MAS)

TYPE_DEVELOPMENT = "development"
TYPE_DISTRIBUTION = "distribution"
SIGNING_TYPES = (TYPE_DEVELOPMENT, TYPE_DISTRIBUTION)

DEFAULT_SIGNING_TYPE = TYPE_DISTRIBUTION


# ----------------------------------------------------------------------------
# Entitlements setting


class EntitlementsMode(Enum):
    UNSET = "unset"
    DEFAULT = "default"
    PATH = "path"


class Entitlements:
    """Entitlements for the root bundle: unset, built-in default, or a file.

    Example:
        Entitlements.coerce(None)      # unset
        Entitlements.coerce(True)      # use the bundled default
        Entitlements.coerce("a.plist") # explicit file
    """

    def __init__(self, mode: EntitlementsMode, path: Path | None = None):
        if (mode is EntitlementsMode.PATH) != (path is not None):
            raise ValueError("a path is required exactly for PATH mode")
        self.mode = mode
        self.path = path

    @classmethod
    def unset(cls) -> "Entitlements":
        return cls(EntitlementsMode.UNSET)

    @classmethod
    def use_default(cls) -> "Entitlements":
        return cls(EntitlementsMode.DEFAULT)

    @classmethod
    def at(cls, path: Pathlike) -> "Entitlements":
        return cls(EntitlementsMode.PATH, Path(path))

    @classmethod
    def coerce(
        cls, value: "Entitlements | Pathlike | bool | None"
    ) -> "Entitlements":
        """Convert a caller-supplied value into an Entitlements setting."""
        if isinstance(value, Entitlements):
            return value
        if value is None or value is False:
            return cls.unset()
        if value is True:
            return cls.use_default()
        if isinstance(value, (str, Path)) and str(value):
            return cls.at(value)
        raise ValidationError(
            f"Entitlements should be a path or a boolean, not {value!r}."
        )

    @property
    def is_set(self) -> bool:
        return self.mode is not EntitlementsMode.UNSET

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entitlements):
            return NotImplemented
        return self.mode is other.mode and self.path == other.path

    def __repr__(self) -> str:
        if self.mode is EntitlementsMode.PATH:
            return f"Entitlements.at({str(self.path)!r})"
        return f"Entitlements.{self.mode.value}"


# ----------------------------------------------------------------------------
# Ignore rules


class IgnoreRule:
    """Decides whether a discovered path is left unsigned."""

    def matches(self, path: Pathlike) -> bool:
        raise NotImplementedError


class PredicateRule(IgnoreRule):
    """Skip paths for which a caller-supplied function returns truthy."""

    def __init__(self, predicate: Callable[[str], object]):
        self.predicate = predicate

    def matches(self, path: Pathlike) -> bool:
        return bool(self.predicate(str(path)))

    def __repr__(self) -> str:
        return f"PredicateRule({self.predicate!r})"


class PatternRule(IgnoreRule):
    """Skip paths matching a regular expression anywhere in the path."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        self._regex = re.compile(pattern)

    def matches(self, path: Pathlike) -> bool:
        return self._regex.search(str(path)) is not None

    def __repr__(self) -> str:
        return f"PatternRule({self.pattern!r})"


def as_ignore_rule(value: object) -> IgnoreRule | None:
    """Convert a callable or pattern string into an IgnoreRule.

    Raises:
        TypeError: If value is neither callable nor a string
        re.error: If a pattern string is not a valid regular expression
    """
    if value is None or isinstance(value, IgnoreRule):
        return value
    if isinstance(value, str):
        return PatternRule(value)
    if callable(value):
        return PredicateRule(value)
    raise TypeError(f"cannot build an ignore rule from {value!r}")


# ----------------------------------------------------------------------------
# Signing request


class SigningRequest:
    """Describes what to sign and how.

    Built once per run from caller configuration and enriched in place by
    each pipeline stage: validation normalizes the signing type, platform,
    ignore rule and extra binaries; identity resolution fills in
    ``identity``; entitlements resolution fills in default entitlements.

    Args:
        app: Path to the .app bundle to sign
        platform: "darwin" or "mas" (detected from the bundle if omitted)
        signing_type: "development" or "distribution" (default)
        identity: Identity name or hash to search for (resolved if omitted)
        entitlements: Entitlements file, True for the bundled default,
            or None
        entitlements_inherit: Entitlements file for nested code
        provisioning_profile: Path to a .provisionprofile or a
            ProvisioningProfile instance
        ignore: Callable or regular expression selecting paths to skip
        binaries: Additional binaries to sign after the discovered ones
        keychain: Keychain passed to codesign and security
        requirements: Requirements passed to codesign
        pre_embed_provisioning_profile: Embed a provisioning profile
            before signing (default: True)
        pre_auto_entitlements: Augment sandbox entitlements before
            signing (default: True)
        target_app_version: Runtime version of the app, gates automatic
            entitlements
        log: Logger used by every stage of the run
    """

    def __init__(
        self,
        app: Pathlike | None,
        platform: str | None = None,
        signing_type: str | None = None,
        identity: str | None = None,
        entitlements: Entitlements | Pathlike | bool | None = None,
        entitlements_inherit: Pathlike | None = None,
        provisioning_profile: object = None,
        ignore: object = None,
        binaries: object = None,
        keychain: str | None = None,
        requirements: str | None = None,
        pre_embed_provisioning_profile: bool = True,
        pre_auto_entitlements: bool = True,
        target_app_version: str | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.app = Path(app) if app else None
        self.platform = platform
        self.signing_type = signing_type
        self.identity = identity
        self.entitlements = Entitlements.coerce(entitlements)
        self.entitlements_inherit = (
            Path(entitlements_inherit) if entitlements_inherit else None
        )
        self.provisioning_profile = provisioning_profile
        self.ignore = ignore
        self.binaries = binaries
        self.keychain = keychain
        self.requirements = requirements
        self.pre_embed_provisioning_profile = pre_embed_provisioning_profile
        self.pre_auto_entitlements = pre_auto_entitlements
        self.target_app_version = target_app_version
        self.log = log or logging.getLogger("macsign")
        # Scratch directory owned by the running pipeline
        self.work_dir: Path | None = None

    @property
    def contents_path(self) -> Path:
        """The Contents directory of the bundle."""
        return self.app / "Contents"

    @property
    def frameworks_path(self) -> Path:
        """The Contents/Frameworks directory of the bundle."""
        return self.contents_path / "Frameworks"

    @property
    def entitlements_path(self) -> Path | None:
        """The root entitlements file, once resolved."""
        return self.entitlements.path

    def summary(self) -> list[tuple[str, object]]:
        """Key facts about the request, in display order."""
        return [
            ("Application", self.app),
            ("Platform", self.platform),
            ("Type", self.signing_type),
            ("Identity", self.identity),
            ("Entitlements", self.entitlements_path),
            ("Child entitlements", self.entitlements_inherit),
            ("Additional binaries", self.binaries),
        ]

    def __repr__(self) -> str:
        return (
            f"SigningRequest(app={str(self.app)!r}, "
            f"platform={self.platform!r})"
        )
