"""Unit tests for nested code discovery."""

import os

from macsign import walk_bundle
from macsign.walker import is_binary_file

from conftest import create_fake_macho


class TestIsBinaryFile:
    """Tests for Mach-O detection."""

    def test_macho(self, temp_dir):
        path = temp_dir / "tool"
        create_fake_macho(path)
        assert is_binary_file(path)

    def test_text_file(self, temp_dir):
        path = temp_dir / "script"
        path.write_text("#!/bin/sh\necho hi\n")
        assert not is_binary_file(path)


class TestWalkBundle:
    """Tests for walk_bundle ordering and filtering."""

    def relative(self, app, paths):
        return [str(p.relative_to(app / "Contents")) for p in paths]

    def test_inside_out_order(self, sample_app):
        found = walk_bundle(sample_app / "Contents")
        helper = "Frameworks/Helper.app"
        assert self.relative(sample_app, found) == [
            f"{helper}/Contents/Frameworks/Inner.framework/Inner",
            f"{helper}/Contents/Frameworks/Inner.framework",
            f"{helper}/Contents/MacOS/Helper",
            helper,
            "MacOS/Test",
            "Resources/addon.node",
        ]

    def test_nested_bundle_after_contents(self, sample_app):
        found = walk_bundle(sample_app / "Contents")
        for index, path in enumerate(found):
            if path.suffix in (".app", ".framework"):
                inside = [p for p in found if path in p.parents]
                assert all(found.index(p) < index for p in inside)

    def test_extensions_always_signed(self, empty_app):
        contents = empty_app / "Contents"
        for name in ("libfoo.dylib", "module.so", "addon.node"):
            (contents / name).write_bytes(b"not really code")
        found = walk_bundle(contents)
        assert sorted(p.name for p in found) == [
            "addon.node",
            "libfoo.dylib",
            "module.so",
        ]

    def test_non_binary_skipped(self, empty_app):
        contents = empty_app / "Contents"
        (contents / "PkgInfo").write_text("APPL????")
        (contents / "Resources").mkdir()
        (contents / "Resources" / "icon.icns").write_bytes(b"icon")
        assert walk_bundle(contents) == []

    def test_hidden_file_skipped(self, empty_app):
        contents = empty_app / "Contents"
        create_fake_macho(contents / ".hidden")
        assert walk_bundle(contents) == []

    def test_space_in_name_probed(self, empty_app):
        contents = empty_app / "Contents"
        create_fake_macho(contents / "MacOS" / "My.Helper Tool")
        (contents / "MacOS" / "Read.Me please").write_text("text")
        found = walk_bundle(contents)
        assert [p.name for p in found] == ["My.Helper Tool"]

    def test_codesign_temp_removed(self, empty_app):
        contents = empty_app / "Contents"
        leftover = contents / "MacOS" / "Test.cstemp"
        leftover.parent.mkdir()
        leftover.write_bytes(b"partial")
        assert walk_bundle(contents) == []
        assert not leftover.exists()

    def test_symlinks_skipped(self, sample_app):
        frameworks = sample_app / "Contents" / "Frameworks"
        inner = "Helper.app/Contents/Frameworks/Inner.framework"
        os.symlink(frameworks / inner, frameworks / "Link.framework")
        os.symlink(
            sample_app / "Contents" / "MacOS" / "Test",
            sample_app / "Contents" / "MacOS" / "TestLink",
        )
        found = walk_bundle(sample_app / "Contents")
        assert all(not p.is_symlink() for p in found)
        assert len(found) == 6

    def test_empty_contents(self, empty_app):
        assert walk_bundle(empty_app / "Contents") == []
