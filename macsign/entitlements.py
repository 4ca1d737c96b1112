"""Entitlements policy and automatic sandbox entitlements."""

import plistlib
import re
import tempfile
from pathlib import Path

from packaging.version import Version

from .errors import ConfigurationError
from .identity import team_id_from_name
from .provisioning import ProvisioningProfile
from .request import (
    PLATFORM_MAS,
    Entitlements,
    EntitlementsMode,
    SigningRequest,
)

RESOURCES_DIR = Path(__file__).parent / "resources"

DEFAULT_ENTITLEMENTS_MAS = RESOURCES_DIR / "default.entitlements.mas.plist"
DEFAULT_ENTITLEMENTS_MAS_INHERIT = (
    RESOURCES_DIR / "default.entitlements.mas.inherit.plist"
)
DEFAULT_ENTITLEMENTS_DARWIN = (
    RESOURCES_DIR / "default.entitlements.darwin.plist"
)
DEFAULT_ENTITLEMENTS_DARWIN_INHERIT = (
    RESOURCES_DIR / "default.entitlements.darwin.inherit.plist"
)

# Runtime version from which sandboxed apps can use application groups
# instead of temporary exceptions.
AUTO_ENTITLEMENTS_MIN_VERSION = Version("1.1.1")

# Semantic version core; prerelease and build suffixes such as
# "-nightly.20180801" or "+build.5" do not take part in comparisons.
APP_VERSION_PATTERN = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?(?:[-+].*)?$"
)

SANDBOX_KEY = "com.apple.security.app-sandbox"
APPLICATION_IDENTIFIER_KEY = "com.apple.application-identifier"
TEAM_IDENTIFIER_KEY = "com.apple.developer.team-identifier"
APPLICATION_GROUPS_KEY = "com.apple.security.application-groups"

# Info.plist key the runtime reads the team identifier from
TEAM_ID_INFO_KEY = "ElectronTeamID"


# ----------------------------------------------------------------------------
# Entitlements resolution


def resolve_entitlements(request: SigningRequest) -> None:
    """Fill in default entitlements files according to the platform.

    Mac App Store apps must be sandboxed, so both entitlements files fall
    back to bundled sandbox templates. Other apps only get defaults when
    entitlements were asked for; without them no --entitlements flag is
    passed to codesign at all.
    """
    log = request.log.getChild("entitlements")

    if request.platform == PLATFORM_MAS:
        if request.entitlements.mode is not EntitlementsMode.PATH:
            request.entitlements = Entitlements.at(DEFAULT_ENTITLEMENTS_MAS)
            log.warning(
                "No `entitlements` passed in arguments: sandbox entitlements "
                "are required for Mac App Store distribution, defaulting to %s",
                DEFAULT_ENTITLEMENTS_MAS,
            )
        if not request.entitlements_inherit:
            request.entitlements_inherit = DEFAULT_ENTITLEMENTS_MAS_INHERIT
            log.warning(
                "No `entitlements-inherit` passed in arguments: "
                "entitlements for nested code default to %s",
                DEFAULT_ENTITLEMENTS_MAS_INHERIT,
            )
        return

    if not request.entitlements.is_set:
        log.warning(
            "No `entitlements` passed in arguments: "
            "provide `entitlements` to specify entitlements for codesign."
        )
        return

    if request.entitlements.mode is EntitlementsMode.DEFAULT:
        request.entitlements = Entitlements.at(DEFAULT_ENTITLEMENTS_DARWIN)
        log.warning(
            "`entitlements` not specified, defaulting to %s",
            DEFAULT_ENTITLEMENTS_DARWIN,
        )
    if not request.entitlements_inherit:
        request.entitlements_inherit = DEFAULT_ENTITLEMENTS_DARWIN_INHERIT
        log.warning(
            "No `entitlements-inherit` passed in arguments: "
            "entitlements for nested code default to %s",
            DEFAULT_ENTITLEMENTS_DARWIN_INHERIT,
        )


# ----------------------------------------------------------------------------
# Automatic entitlements


def parse_app_version(value: object) -> Version:
    """Return the numeric core of a semantic version.

    Example:
        >>> parse_app_version("3.0.0-nightly.20180801")
        <Version('3.0.0')>

    Raises:
        ValueError: If the value does not start with a numeric version
    """
    match = APP_VERSION_PATTERN.match(str(value).strip())
    if not match:
        raise ValueError(f"Not a semantic version: {value!r}")
    major, minor, patch = match.group("major", "minor", "patch")
    return Version(f"{major}.{minor or 0}.{patch or 0}")


def auto_entitlements_applicable(request: SigningRequest) -> bool:
    """Whether the automatic entitlements pre-sign operation should run."""
    if request.pre_auto_entitlements is False:
        return False
    if not request.entitlements.is_set:
        return False
    if request.target_app_version is None:
        return True
    version = parse_app_version(request.target_app_version)
    return version >= AUTO_ENTITLEMENTS_MIN_VERSION


def read_plist(path: Path) -> dict:
    """Read an XML or binary property list holding a dictionary."""
    try:
        with open(path, "rb") as f:
            data = plistlib.load(f)
    except plistlib.InvalidFileException as e:
        raise ConfigurationError(f"Invalid property list: {path}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Property list is not a dictionary: {path}")
    return data


def write_plist(path: Path, data: dict) -> None:
    with open(path, "wb") as f:
        plistlib.dump(data, f)


def _team_id(request: SigningRequest) -> str | None:
    profile = request.provisioning_profile
    if isinstance(profile, ProvisioningProfile) and profile.team_identifier:
        return profile.team_identifier
    # The team identifier in the identity name is only a fallback
    return team_id_from_name(request.identity or "")


def pre_auto_entitlements(request: SigningRequest) -> None:
    """Pre-sign operation adding application group entitlements.

    Only acts when the entitlements enable the app sandbox. Ensures
    Info.plist carries the team identifier, then adds the application
    identifier, team identifier and application group to a copy of the
    entitlements, which replaces the request's entitlements file.

    The copy goes to ``request.work_dir``, which the pipeline removes at
    the end of the run. Without one a new temporary directory is created
    and left to the caller.

    Raises:
        ConfigurationError: If a property list cannot be read or the
            team or bundle identifier cannot be determined
    """
    log = request.log.getChild("entitlements")
    info_path = request.contents_path / "Info.plist"
    entitlements_path = request.entitlements_path
    log.debug(
        "Automating entitlement app group: Info.plist %s, entitlements %s",
        info_path,
        entitlements_path,
    )

    entitlements = read_plist(entitlements_path)
    if not entitlements.get(SANDBOX_KEY):
        log.debug("App sandbox not enabled, entitlements left unchanged.")
        return

    app_info = read_plist(info_path)
    team_id = app_info.get(TEAM_ID_INFO_KEY)
    if team_id:
        log.debug("`%s` found in Info.plist: %s", TEAM_ID_INFO_KEY, team_id)
    else:
        team_id = _team_id(request)
        if not team_id:
            raise ConfigurationError(
                "Cannot determine the team identifier from the provisioning "
                "profile or the signing identity."
            )
        app_info[TEAM_ID_INFO_KEY] = team_id
        write_plist(info_path, app_info)
        log.debug("`%s` added to Info.plist: %s", TEAM_ID_INFO_KEY, team_id)

    bundle_id = app_info.get("CFBundleIdentifier")
    if not bundle_id:
        raise ConfigurationError(f"No CFBundleIdentifier in {info_path}")
    app_identifier = f"{team_id}.{bundle_id}"

    if APPLICATION_IDENTIFIER_KEY not in entitlements:
        entitlements[APPLICATION_IDENTIFIER_KEY] = app_identifier
        log.debug(
            "`%s` inserted: %s", APPLICATION_IDENTIFIER_KEY, app_identifier
        )
    if TEAM_IDENTIFIER_KEY not in entitlements:
        entitlements[TEAM_IDENTIFIER_KEY] = team_id
        log.debug("`%s` inserted: %s", TEAM_IDENTIFIER_KEY, team_id)

    groups = entitlements.setdefault(APPLICATION_GROUPS_KEY, [])
    if isinstance(groups, list) and app_identifier not in groups:
        groups.append(app_identifier)
        log.debug("`%s` extended: %s", APPLICATION_GROUPS_KEY, app_identifier)

    work_dir = request.work_dir or Path(tempfile.mkdtemp(prefix="macsign."))
    augmented = Path(work_dir) / "entitlements.plist"
    write_plist(augmented, entitlements)
    request.entitlements = Entitlements.at(augmented)
    log.info("Entitlements written to %s", augmented)
