"""Shared fixtures: sample bundles and a fake codesign/security/spctl."""

import plistlib
import subprocess
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

# Mach-O 64-bit magic number for creating fake binaries
MACHO_MAGIC_64 = b"\xcf\xfa\xed\xfe"

DEVELOPER_ID = "Developer ID Application: John Doe (ABCDE12345)"
MAS_DISTRIBUTION_ID = "3rd Party Mac Developer Application: John Doe (ABCDE12345)"
MAS_DEVELOPMENT_ID = "Mac Developer: John Doe (XYZ9876543)"

IDENTITY_LISTING = f"""\
  1) 0123456789ABCDEF0123456789ABCDEF01234567 "{DEVELOPER_ID}"
  2) 89ABCDEF0123456789ABCDEF0123456789ABCDEF "{MAS_DISTRIBUTION_ID}"
  3) FEDCBA9876543210FEDCBA9876543210FEDCBA98 "{MAS_DEVELOPMENT_ID}"
     3 valid identities found
"""


def create_fake_macho(path: Path) -> None:
    """Create a fake Mach-O file for testing."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(MACHO_MAGIC_64 + b"\x00" * 100)
    path.chmod(0o755)


def write_plist(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as f:
        plistlib.dump(data, f)


class FakeTools:
    """Stands in for subprocess.run, recording every command.

    security find-identity lists IDENTITY_LISTING, security cms decodes
    the profiles registered in ``profiles`` and everything else succeeds
    with empty output unless registered with fail().
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.identities = IDENTITY_LISTING
        self.profiles: dict[str, dict] = {}
        self.failures: list[tuple[str, str | None, str]] = []

    def fail(self, tool: str, argument: str | None = None, stderr: str = "boom"):
        """Make calls of tool (having argument, if given) fail."""
        self.failures.append((tool, argument, stderr))

    def __call__(self, command, **kwargs):
        command = list(command)
        self.calls.append(command)
        for tool, argument, stderr in self.failures:
            if command[0] == tool and (argument is None or argument in command):
                raise subprocess.CalledProcessError(
                    1, command, output="", stderr=stderr
                )
        stdout = ""
        if command[:2] == ["security", "find-identity"]:
            stdout = self.identities
        elif command[:2] == ["security", "cms"]:
            path = command[command.index("-i") + 1]
            stdout = plistlib.dumps(self.profiles[path]).decode("utf-8")
        return subprocess.CompletedProcess(command, 0, stdout=stdout, stderr="")

    def commands(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == tool]

    def signing_calls(self) -> list[list[str]]:
        return [c for c in self.commands("codesign") if "--sign" in c]

    def signed_paths(self) -> list[str]:
        return [c[-1] for c in self.signing_calls()]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdirname:
        yield Path(tmpdirname)


@pytest.fixture
def fake_tools():
    """Patch subprocess.run with a FakeTools instance."""
    tools = FakeTools()
    with patch("subprocess.run", side_effect=tools):
        yield tools


@pytest.fixture
def empty_app(temp_dir):
    """Create an .app bundle without nested code."""
    app = temp_dir / "Empty.app"
    write_plist(
        app / "Contents" / "Info.plist",
        {"CFBundleIdentifier": "com.example.empty"},
    )
    return app


@pytest.fixture
def sample_app(temp_dir):
    """Create an .app bundle with nested code.

    Test.app/Contents/
        Info.plist
        MacOS/Test
        Frameworks/Helper.app/Contents/MacOS/Helper
        Frameworks/Helper.app/Contents/Frameworks/Inner.framework/Inner
        Resources/addon.node
        Resources/app.icns
    """
    app = temp_dir / "Test.app"
    contents = app / "Contents"
    write_plist(
        contents / "Info.plist",
        {"CFBundleIdentifier": "com.example.test", "CFBundleExecutable": "Test"},
    )
    create_fake_macho(contents / "MacOS" / "Test")

    helper = contents / "Frameworks" / "Helper.app" / "Contents"
    create_fake_macho(helper / "MacOS" / "Helper")
    create_fake_macho(helper / "Frameworks" / "Inner.framework" / "Inner")

    resources = contents / "Resources"
    resources.mkdir()
    (resources / "addon.node").write_bytes(b"fake addon")
    (resources / "app.icns").write_bytes(b"fake icon")
    return app
