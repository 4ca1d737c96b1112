"""The signing pipeline and its public entry points.

A run is an ordered list of named stages, each taking the request and
enriching it in place. The driver stops at the first failing stage; no
stage is retried and signatures already applied are not rolled back.
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Callable

from .entitlements import (
    auto_entitlements_applicable,
    pre_auto_entitlements,
    resolve_entitlements,
)
from .errors import PreSignError, SignError
from .identity import IdentityFinder, IdentityResolver, find_identities
from .provisioning import pre_embed_provisioning_profile
from .request import SigningRequest
from .signer import BundleWalker, Codesigner
from .validation import validate_request
from .verifier import Verifier
from .walker import walk_bundle

Stage = Callable[[SigningRequest], object]
PreSignOperation = Callable[[SigningRequest], None]
SignCallback = Callable[[Exception | None], None]


class SignPipeline:
    """Validate, resolve, prepare, sign and verify one application bundle.

    Args:
        request: The signing request for this run
        identity_finder: Identity store query
        walker: Bundle walker listing nested code innermost first
        embedder: Provisioning profile pre-sign operation
        augmenter: Automatic entitlements pre-sign operation

    Example:
        request = SigningRequest("MyApp.app", platform="darwin")
        SignPipeline(request).process()
    """

    def __init__(
        self,
        request: SigningRequest,
        identity_finder: IdentityFinder = find_identities,
        walker: BundleWalker = walk_bundle,
        embedder: PreSignOperation = pre_embed_provisioning_profile,
        augmenter: PreSignOperation = pre_auto_entitlements,
    ) -> None:
        self.request = request
        self.identity_finder = identity_finder
        self.walker = walker
        self.embedder = embedder
        self.augmenter = augmenter
        self.log = request.log
        self.signed: list[Path] = []

    # Stages

    def validate(self, request: SigningRequest) -> None:
        validate_request(request)

    def resolve_identity(self, request: SigningRequest) -> None:
        IdentityResolver(self.identity_finder).resolve(request)

    def resolve_entitlements(self, request: SigningRequest) -> None:
        resolve_entitlements(request)

    def pre_sign_operations(
        self, request: SigningRequest
    ) -> list[tuple[str, PreSignOperation]]:
        """The enabled pre-sign operations, in execution order."""
        operations = []
        if request.pre_embed_provisioning_profile is False:
            self.log.warning(
                "Pre-sign operation disabled for provisioning profile "
                "embedding."
            )
        else:
            operations.append(("embed-provisioning-profile", self.embedder))

        if request.pre_auto_entitlements is False:
            self.log.warning(
                "Pre-sign operation disabled for entitlements automation."
            )
        elif auto_entitlements_applicable(request):
            operations.append(("auto-entitlements", self.augmenter))
        else:
            self.log.debug(
                "Entitlements automation skipped: requires entitlements "
                "and a target app version of at least 1.1.1."
            )
        return operations

    def pre_sign(self, request: SigningRequest) -> None:
        for name, operation in self.pre_sign_operations(request):
            self.log.debug("Pre-sign operation: %s", name)
            try:
                operation(request)
            except PreSignError:
                raise
            except (SignError, OSError, ValueError) as e:
                raise PreSignError(name, str(e)) from e

    def sign(self, request: SigningRequest) -> None:
        self.log.info(
            "Signing application...\n%s",
            "\n".join(f"> {key}: {value}" for key, value in request.summary()),
        )
        self.signed = Codesigner(request, walker=self.walker).process()

    def verify(self, request: SigningRequest) -> None:
        Verifier(request).process()

    def stages(self) -> list[tuple[str, Stage]]:
        """The pipeline stages, in execution order."""
        return [
            ("validate", self.validate),
            ("identity", self.resolve_identity),
            ("entitlements", self.resolve_entitlements),
            ("pre-sign", self.pre_sign),
            ("sign", self.sign),
            ("verify", self.verify),
        ]

    def process(self) -> SigningRequest:
        """Run every stage in order, stopping at the first failure.

        Stages share a scratch directory, removed when the run ends, so
        files written there (augmented entitlements) only live as long
        as the run.

        Returns:
            The enriched request

        Raises:
            SignError: The failure of the first failing stage
        """
        with tempfile.TemporaryDirectory(prefix="macsign.") as work_dir:
            self.request.work_dir = Path(work_dir)
            try:
                for name, stage in self.stages():
                    self.log.debug("Stage: %s", name)
                    stage(self.request)
            finally:
                self.request.work_dir = None
        self.log.info("Application signed: %s", self.request.app)
        return self.request


def sign_app(request: SigningRequest, **collaborators) -> SigningRequest:
    """Sign an application bundle.

    Args:
        request: The signing request
        **collaborators: Replacements for the pipeline's collaborators
            (identity_finder, walker, embedder, augmenter)

    Returns:
        The enriched request

    Raises:
        SignError: If any stage fails
    """
    return SignPipeline(request, **collaborators).process()


async def sign_async(
    request: SigningRequest, **collaborators
) -> SigningRequest:
    """Sign an application bundle without blocking the event loop.

    The pipeline itself stays sequential and runs in a worker thread.
    """
    return await asyncio.to_thread(sign_app, request, **collaborators)


def _default_callback(request: SigningRequest) -> SignCallback:
    def callback(error: Exception | None) -> None:
        if error is not None:
            request.log.error("Sign failed: %s", error)
            return
        request.log.debug("Application signed: %s", request.app)

    return callback


def sign(
    request: SigningRequest,
    callback: SignCallback | None = None,
    **collaborators,
) -> None:
    """Sign an application bundle, reporting the outcome to a callback.

    Never raises: the callback is called exactly once, with None on
    success or with the exception that ended the run. An exception
    raised by the callback itself is logged.

    Args:
        request: The signing request
        callback: Called as ``callback(error)``; logs the outcome when
            omitted
        **collaborators: Replacements for the pipeline's collaborators
    """
    if callback is None:
        callback = _default_callback(request)
    error: Exception | None = None
    try:
        sign_app(request, **collaborators)
    except Exception as e:
        error = e
    try:
        callback(error)
    except Exception:
        request.log.exception("Sign callback failed")

