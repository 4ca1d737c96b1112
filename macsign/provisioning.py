"""Provisioning profiles: decoding, discovery and embedding."""

import logging
import plistlib
import shutil
from pathlib import Path

from .errors import CommandError, ConfigurationError
from .process import run_command
from .request import (
    PLATFORM_DARWIN,
    PLATFORM_MAS,
    TYPE_DEVELOPMENT,
    TYPE_DISTRIBUTION,
    Pathlike,
    SigningRequest,
)

PROFILE_EXTENSION = ".provisionprofile"
EMBEDDED_PROFILE_NAME = "embedded.provisionprofile"


class ProvisioningProfile:
    """A decoded provisioning profile.

    Args:
        file_path: Path to the .provisionprofile file
        message: The decoded property list of the profile
    """

    def __init__(self, file_path: Pathlike, message: dict[str, object]):
        self.file_path = Path(file_path)
        self.message = message

    @property
    def name(self) -> str | None:
        return self.message.get("Name")  # type: ignore[return-value]

    @property
    def type(self) -> str:
        """Development profiles list the devices they provision."""
        if "ProvisionedDevices" in self.message:
            return TYPE_DEVELOPMENT
        return TYPE_DISTRIBUTION

    @property
    def platforms(self) -> list[str]:
        # Developer ID profiles provision all devices
        if "ProvisionsAllDevices" in self.message:
            return [PLATFORM_DARWIN]
        if self.type == TYPE_DISTRIBUTION:
            return [PLATFORM_MAS]
        return [PLATFORM_DARWIN, PLATFORM_MAS]

    @property
    def entitlements(self) -> dict[str, object]:
        value = self.message.get("Entitlements")
        return value if isinstance(value, dict) else {}

    @property
    def team_identifier(self) -> str | None:
        value = self.entitlements.get("com.apple.developer.team-identifier")
        return value if isinstance(value, str) else None

    def __repr__(self) -> str:
        return f"ProvisioningProfile({str(self.file_path)!r})"


def get_provisioning_profile(
    path: Pathlike,
    keychain: str | None = None,
    log: logging.Logger | None = None,
) -> ProvisioningProfile:
    """Decode a provisioning profile with ``security cms``.

    Args:
        path: Path to the .provisionprofile file
        keychain: Optional keychain to use for decoding
        log: Optional logger

    Returns:
        The decoded ProvisioningProfile

    Raises:
        CommandError: If security cannot decode the file
        ConfigurationError: If the decoded content is not a property list
    """
    command = ["security", "cms", "-D", "-i", str(path)]
    if keychain:
        command.extend(["-k", keychain])
    output = run_command(command, log=log)
    try:
        message = plistlib.loads(output.encode("utf-8"))
    except plistlib.InvalidFileException as e:
        raise ConfigurationError(
            f"Provisioning profile is not a property list: {path}"
        ) from e
    if not isinstance(message, dict):
        raise ConfigurationError(
            f"Provisioning profile is not a dictionary: {path}"
        )

    profile = ProvisioningProfile(path, message)
    if log:
        log.debug(
            "Provisioning profile: %s (type: %s, platforms: %s)",
            profile.name,
            profile.type,
            ", ".join(profile.platforms),
        )
    return profile


def find_provisioning_profiles(
    platform: str,
    signing_type: str,
    search_dirs: list[Path] | None = None,
    keychain: str | None = None,
    log: logging.Logger | None = None,
) -> list[ProvisioningProfile]:
    """Find provisioning profiles matching a platform and signing type.

    Only regular files with the .provisionprofile extension directly
    inside the search directories are considered.

    Args:
        platform: "darwin" or "mas"
        signing_type: "development" or "distribution"
        search_dirs: Directories to search (default: current directory)
        keychain: Optional keychain to use for decoding
        log: Optional logger

    Returns:
        Matching profiles, in sorted file name order
    """
    if search_dirs is None:
        search_dirs = [Path.cwd()]

    profiles = []
    for directory in search_dirs:
        for path in sorted(Path(directory).iterdir()):
            if path.is_symlink() or not path.is_file():
                continue
            if path.suffix != PROFILE_EXTENSION:
                continue
            profile = get_provisioning_profile(path, keychain, log)
            if platform in profile.platforms and profile.type == signing_type:
                profiles.append(profile)
            elif log:
                log.warning(
                    "Provisioning profile %s ignored, not for %s %s.",
                    path,
                    platform,
                    signing_type,
                )
    return profiles


def embed_provisioning_profile(
    profile: ProvisioningProfile,
    contents_path: Path,
    log: logging.Logger | None = None,
) -> Path:
    """Copy a profile into a bundle, replacing any embedded profile."""
    embedded = contents_path / EMBEDDED_PROFILE_NAME
    if embedded.exists():
        if log:
            log.debug("Removing old embedded provisioning profile %s", embedded)
        embedded.unlink()
    if log:
        log.info("Embedding provisioning profile %s", profile.file_path)
    shutil.copyfile(profile.file_path, embedded)
    return embedded


def pre_embed_provisioning_profile(request: SigningRequest) -> None:
    """Pre-sign operation embedding a provisioning profile in the bundle.

    An explicit profile path is decoded and replaced by the decoded
    ProvisioningProfile. Without one, profiles in the current working
    directory are searched; when none matches, nothing is embedded.

    Args:
        request: The resolved SigningRequest

    Raises:
        CommandError: If an explicit profile cannot be decoded
        OSError: If the profile cannot be copied into the bundle
    """
    log = request.log.getChild("provisioning")
    profile = request.provisioning_profile

    if profile is None:
        log.debug(
            "No provisioning profile passed in arguments, "
            "searching in current working directory..."
        )
        found = find_provisioning_profiles(
            request.platform,
            request.signing_type,
            keychain=request.keychain,
            log=log,
        )
        if not found:
            log.info(
                "No provisioning profile found, will not embed profile "
                "in app contents."
            )
            return
        if len(found) > 1:
            log.info(
                "Multiple provisioning profiles found, "
                "will use the first discovered."
            )
        profile = found[0]
    elif not isinstance(profile, ProvisioningProfile):
        try:
            profile = get_provisioning_profile(
                profile, request.keychain, log
            )
        except CommandError as e:
            raise ConfigurationError(
                "Cannot read provisioning profile "
                f"{request.provisioning_profile}: {e.output or e}"
            ) from e

    request.provisioning_profile = profile
    embed_provisioning_profile(profile, request.contents_path, log)
