"""Validation of signing requests.

Validation runs before anything touches the bundle. Besides rejecting
malformed requests, it normalizes a few fields in place: the signing
type defaults to "distribution", a missing platform is detected from the
bundle, extra binaries become a list and the ignore value becomes an
IgnoreRule.
"""

import re
from pathlib import Path

from .entitlements import parse_app_version
from .errors import ValidationError
from .provisioning import ProvisioningProfile
from .request import (
    DEFAULT_SIGNING_TYPE,
    PLATFORM_DARWIN,
    PLATFORM_MAS,
    PLATFORMS,
    SIGNING_TYPES,
    SigningRequest,
    as_ignore_rule,
)

APP_EXTENSION = ".app"

# Only non-App Store builds ship the Squirrel auto-updater
SQUIRREL_FRAMEWORK = "Squirrel.framework"


def validate_app(request: SigningRequest) -> None:
    """Check that the application bundle is given and exists."""
    if not request.app:
        raise ValidationError("Path to application must be specified.")
    if request.app.suffix != APP_EXTENSION:
        raise ValidationError(
            f"Extension of application must be `{APP_EXTENSION}`: "
            f"{request.app}"
        )
    if not request.app.exists():
        raise ValidationError(f"Application does not exist: {request.app}")


def detect_platform(request: SigningRequest) -> str:
    """Guess the target platform from the contents of the bundle."""
    squirrel = request.frameworks_path / SQUIRREL_FRAMEWORK
    if squirrel.exists():
        return PLATFORM_DARWIN
    return PLATFORM_MAS


def validate_platform(request: SigningRequest) -> None:
    """Keep a recognized platform, otherwise detect it from the bundle."""
    if request.platform in PLATFORMS:
        return
    if request.platform:
        request.log.warning(
            "`platform` %r not supported, checking bundle platform...",
            request.platform,
        )
    else:
        request.log.warning(
            "No `platform` passed in arguments, checking bundle platform..."
        )
    request.platform = detect_platform(request)
    request.log.info("Detected platform: %s", request.platform)


def validate_binaries(request: SigningRequest) -> None:
    if request.binaries is None:
        request.binaries = []
        return
    if not isinstance(request.binaries, (list, tuple)):
        raise ValidationError("Additional binaries should be a list.")
    request.binaries = [Path(binary) for binary in request.binaries]


def validate_ignore(request: SigningRequest) -> None:
    if request.ignore is None:
        return
    try:
        request.ignore = as_ignore_rule(request.ignore)
    except TypeError as e:
        raise ValidationError(
            "Ignore filter should be either a function or a string."
        ) from e
    except re.error as e:
        raise ValidationError(
            f"Ignore filter is not a valid regular expression: {e}"
        ) from e


def validate_provisioning_profile(request: SigningRequest) -> None:
    profile = request.provisioning_profile
    if profile is None:
        return
    if isinstance(profile, (str, Path, ProvisioningProfile)):
        return
    raise ValidationError(
        "Path to provisioning profile should be a string "
        "or a ProvisioningProfile object."
    )


def validate_signing_type(request: SigningRequest) -> None:
    if not request.signing_type:
        request.signing_type = DEFAULT_SIGNING_TYPE
        return
    if request.signing_type not in SIGNING_TYPES:
        raise ValidationError(
            "Type must be either `development` or `distribution`."
        )


def validate_target_app_version(request: SigningRequest) -> None:
    if request.target_app_version is None:
        return
    try:
        parse_app_version(request.target_app_version)
    except ValueError as e:
        raise ValidationError(
            f"Invalid target app version: {request.target_app_version!r}"
        ) from e


VALIDATORS = [
    validate_app,
    validate_platform,
    validate_binaries,
    validate_ignore,
    validate_provisioning_profile,
    validate_signing_type,
    validate_target_app_version,
]


def validate_request(request: SigningRequest) -> None:
    """Validate a signing request, raising on the first problem found.

    Raises:
        ValidationError: If any check fails
    """
    for validator in VALIDATORS:
        validator(request)
