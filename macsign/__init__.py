"""macsign - code signing for macOS application bundles.

Signs an application bundle and everything nested inside it, in an order
where nested code is always signed before the bundle containing it, then
verifies the result with codesign and, for Developer ID distribution,
Gatekeeper. Identities come from the keychain, entitlements default to
bundled templates, and provisioning profiles can be embedded first.

Usage (CLI):
    # Sign with the first Developer ID Application identity found
    macsign sign MyApp.app

    # Sign for the Mac App Store with explicit entitlements
    macsign sign MyApp.app --platform mas -e parent.plist \\
        --entitlements-inherit child.plist

Usage (API):
    from macsign import SigningRequest, sign_app

    request = SigningRequest("MyApp.app", platform="darwin",
                             entitlements=True)
    sign_app(request)
"""

__version__ = "0.1.0"

from .entitlements import (
    DEFAULT_ENTITLEMENTS_DARWIN,
    DEFAULT_ENTITLEMENTS_DARWIN_INHERIT,
    DEFAULT_ENTITLEMENTS_MAS,
    DEFAULT_ENTITLEMENTS_MAS_INHERIT,
    pre_auto_entitlements,
    resolve_entitlements,
)
from .errors import (
    CommandError,
    ConfigurationError,
    IdentityResolutionError,
    PreSignError,
    SignError,
    SigningError,
    ValidationError,
    VerificationError,
)
from .identity import Identity, IdentityResolver, find_identities
from .pipeline import SignPipeline, sign, sign_app, sign_async
from .process import run_command
from .provisioning import ProvisioningProfile, pre_embed_provisioning_profile
from .request import (
    Entitlements,
    IgnoreRule,
    PatternRule,
    PredicateRule,
    SigningRequest,
)
from .signer import Codesigner
from .validation import validate_request
from .verifier import Verifier
from .walker import walk_bundle
