"""Command-line interface for macsign."""

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .config import (
    ENV_IDENTITY,
    ENV_KEYCHAIN,
    get_config_value,
    get_env_value,
    load_config,
)
from .errors import ConfigurationError, SignError
from .identity import find_identities
from .logs import setup_logging
from .pipeline import sign_app
from .request import PLATFORMS, SIGNING_TYPES, SigningRequest

# Value of --entitlements selecting the bundled default file
ENTITLEMENTS_DEFAULT = "default"


def _load_config(args: argparse.Namespace) -> dict[str, object]:
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        return load_config(config_path)
    return load_config()


def _setting(
    value: str | None,
    config: dict[str, object],
    key: str,
    env: str | None = None,
) -> str | None:
    """Resolve a setting from flag, then config file, then environment."""
    if value is not None:
        return value
    value = get_config_value(config, "sign", key)
    if value is None and env:
        value = get_env_value(env)
    return value


def _cmd_sign(args: argparse.Namespace) -> None:
    """Handle 'sign' subcommand."""
    setup_logging(args.verbose, not args.no_color)
    log = logging.getLogger("macsign")
    config = _load_config(args)

    entitlements: str | bool | None = _setting(
        args.entitlements, config, "entitlements"
    )
    if entitlements == ENTITLEMENTS_DEFAULT:
        entitlements = True

    pre_embed = not args.no_pre_embed_provisioning_profile
    request = SigningRequest(
        app=args.app,
        platform=_setting(args.platform, config, "platform"),
        signing_type=_setting(args.type, config, "type"),
        identity=_setting(args.identity, config, "identity", ENV_IDENTITY),
        entitlements=entitlements,
        entitlements_inherit=_setting(
            args.entitlements_inherit, config, "entitlements_inherit"
        ),
        provisioning_profile=_setting(
            args.provisioning_profile, config, "provisioning_profile"
        ),
        ignore=args.ignore,
        binaries=args.binaries,
        keychain=_setting(args.keychain, config, "keychain", ENV_KEYCHAIN),
        requirements=_setting(args.requirements, config, "requirements"),
        pre_embed_provisioning_profile=pre_embed,
        pre_auto_entitlements=not args.no_pre_auto_entitlements,
        target_app_version=args.target_app_version,
        log=log,
    )
    sign_app(request)
    log.info("Signed: %s", request.app)


def _cmd_identities(args: argparse.Namespace) -> None:
    """Handle 'identities' subcommand."""
    setup_logging(args.verbose, not args.no_color)
    log = logging.getLogger("macsign")
    config = _load_config(args)
    keychain = _setting(args.keychain, config, "keychain", ENV_KEYCHAIN)

    identities = find_identities(args.search, keychain=keychain, log=log)
    for identity in identities:
        print(f'{identity.hash} "{identity.name}"')
    if not identities:
        log.warning("No identity matches %r", args.search)


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """Add common options to a parser."""
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        help="configuration file (default: .macsign.toml or macsign.toml)",
    )
    parser.add_argument(
        "-k",
        "--keychain",
        metavar="KEYCHAIN",
        help=f"keychain to search for identities (or set {ENV_KEYCHAIN})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="disable colored output",
    )


def main(argv: list[str] | None = None) -> None:
    """Command line interface for macsign."""
    try:
        parser = argparse.ArgumentParser(
            prog="macsign",
            description="Code sign macOS application bundles.",
            epilog=(
                "Examples:\n"
                "  macsign sign MyApp.app\n"
                "  macsign sign MyApp.app --platform mas --type development\n"
                "  macsign identities 'Developer ID Application:'\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {__version__}",
        )

        subparsers = parser.add_subparsers(
            title="commands",
            dest="command",
            required=True,
        )

        # --- sign subcommand ---
        sign_parser = subparsers.add_parser(
            "sign",
            help="sign an application bundle and its nested code",
            description=(
                "Sign nested code inside-out, then the bundle, "
                "and verify the result."
            ),
            epilog=(
                "Examples:\n"
                "  macsign sign MyApp.app\n"
                "  macsign sign MyApp.app -i 'Developer ID Application: "
                "John Doe' -e entitlements.plist\n"
                "  macsign sign MyApp.app --platform mas "
                "--provisioning-profile app.provisionprofile\n"
                "  macsign sign MyApp.app extra/tool --ignore '\\.pak$'\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        sign_parser.add_argument(
            "app",
            help="path to the .app bundle to sign",
        )
        sign_parser.add_argument(
            "binaries",
            nargs="*",
            metavar="BINARY",
            help="additional binaries to sign before the bundle",
        )
        sign_parser.add_argument(
            "-i",
            "--identity",
            metavar="ID",
            help=f"identity name or hash (or set {ENV_IDENTITY})",
        )
        sign_parser.add_argument(
            "-e",
            "--entitlements",
            metavar="FILE",
            help=(
                "entitlements for the bundle; "
                f"'{ENTITLEMENTS_DEFAULT}' selects the bundled default"
            ),
        )
        sign_parser.add_argument(
            "--entitlements-inherit",
            metavar="FILE",
            help="entitlements for nested code",
        )
        sign_parser.add_argument(
            "-p",
            "--platform",
            choices=PLATFORMS,
            help="target platform (default: detected from the bundle)",
        )
        sign_parser.add_argument(
            "-t",
            "--type",
            choices=SIGNING_TYPES,
            help="signing type (default: distribution)",
        )
        sign_parser.add_argument(
            "--provisioning-profile",
            metavar="FILE",
            help="provisioning profile to embed",
        )
        sign_parser.add_argument(
            "--requirements",
            metavar="REQ",
            help="code requirements passed to codesign",
        )
        sign_parser.add_argument(
            "--ignore",
            metavar="REGEX",
            help="skip nested paths matching this regular expression",
        )
        sign_parser.add_argument(
            "--target-app-version",
            metavar="VERSION",
            help="runtime version of the app, gates automatic entitlements",
        )
        sign_parser.add_argument(
            "--no-pre-embed-provisioning-profile",
            action="store_true",
            help="do not embed a provisioning profile",
        )
        sign_parser.add_argument(
            "--no-pre-auto-entitlements",
            action="store_true",
            help="do not add application group entitlements",
        )
        _add_common_options(sign_parser)
        sign_parser.set_defaults(func=_cmd_sign)

        # --- identities subcommand ---
        identities_parser = subparsers.add_parser(
            "identities",
            help="list valid code signing identities",
            description="List valid code signing identities in the keychain.",
        )
        identities_parser.add_argument(
            "search",
            nargs="?",
            default="",
            help="only list identities containing this text",
        )
        _add_common_options(identities_parser)
        identities_parser.set_defaults(func=_cmd_identities)

        args = parser.parse_args(argv)
        args.func(args)

    except SignError as e:
        logging.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logging.error("Unexpected error: %s", e)
        sys.exit(1)
