"""Discovery of nested code inside an application bundle."""

import logging
import os
from pathlib import Path

from macholib.util import is_platform_file

from .request import Pathlike

# Files always signed regardless of content
SIGNABLE_FILE_EXTENSIONS = [".dylib", ".so", ".node"]

# Bundles signed after their own contents
SIGNABLE_FOLDER_EXTENSIONS = [".app", ".framework"]

# Left over by interrupted codesign runs
CODESIGN_TEMP_EXTENSION = ".cstemp"


def is_binary_file(path: Pathlike) -> bool:
    """Check if a file is a Mach-O binary (thin or universal)."""
    return is_platform_file(str(path))


def _is_signable_file(path: Path, log: logging.Logger | None) -> bool:
    suffix = path.suffix
    if not suffix:
        return not path.name.startswith(".") and is_binary_file(path)
    if suffix in SIGNABLE_FILE_EXTENSIONS:
        return True
    if suffix == CODESIGN_TEMP_EXTENSION:
        if log:
            log.debug("Removing %s", path)
        path.unlink()
        return False
    # "My.Helper Tool" has no real extension
    if " " in suffix:
        return is_binary_file(path)
    return False


def walk_bundle(
    contents_path: Pathlike, log: logging.Logger | None = None
) -> list[Path]:
    """List the code inside a bundle, innermost first.

    Nested .app and .framework directories are listed after everything
    they contain, so signing in list order never signs a bundle before
    its contents. Symbolic links are never followed nor listed.

    Args:
        contents_path: The bundle's Contents directory
        log: Optional logger

    Returns:
        Signable paths in signing order
    """
    contents_path = Path(contents_path)
    if log:
        log.debug("Walking %s", contents_path)

    found: list[Path] = []
    with os.scandir(contents_path) as it:
        entries = sorted(it, key=lambda entry: entry.name)

    for entry in entries:
        path = Path(entry.path)
        if entry.is_symlink():
            continue
        if entry.is_dir():
            found.extend(walk_bundle(path, log))
            if path.suffix in SIGNABLE_FOLDER_EXTENSIONS:
                found.append(path)
        elif entry.is_file() and _is_signable_file(path, log):
            found.append(path)
    return found
