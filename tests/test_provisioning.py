"""Unit tests for provisioning profile handling."""

import pytest

from macsign import (
    CommandError,
    ConfigurationError,
    ProvisioningProfile,
    SigningRequest,
    pre_embed_provisioning_profile,
)
from macsign.provisioning import (
    EMBEDDED_PROFILE_NAME,
    embed_provisioning_profile,
    find_provisioning_profiles,
    get_provisioning_profile,
)

DEVELOPMENT_PROFILE = {
    "Name": "Dev",
    "ProvisionedDevices": ["0000-1111"],
    "Entitlements": {"com.apple.developer.team-identifier": "ABCDE12345"},
}
MAS_PROFILE = {"Name": "Store"}
DEVELOPER_ID_PROFILE = {"Name": "Direct", "ProvisionsAllDevices": True}


def add_profile(fake_tools, directory, name, message):
    path = directory / name
    path.write_bytes(b"signed profile " + name.encode())
    fake_tools.profiles[str(path)] = message
    return path


class TestProvisioningProfile:
    """Tests for the decoded profile properties."""

    def test_development(self):
        profile = ProvisioningProfile("a.provisionprofile", DEVELOPMENT_PROFILE)
        assert profile.name == "Dev"
        assert profile.type == "development"
        assert profile.platforms == ["darwin", "mas"]
        assert profile.team_identifier == "ABCDE12345"

    def test_mas_distribution(self):
        profile = ProvisioningProfile("a.provisionprofile", MAS_PROFILE)
        assert profile.type == "distribution"
        assert profile.platforms == ["mas"]
        assert profile.entitlements == {}
        assert profile.team_identifier is None

    def test_developer_id(self):
        profile = ProvisioningProfile("a.provisionprofile", DEVELOPER_ID_PROFILE)
        assert profile.type == "distribution"
        assert profile.platforms == ["darwin"]


class TestGetProvisioningProfile:
    """Tests for decoding with security cms."""

    def test_decode(self, fake_tools, temp_dir):
        path = add_profile(fake_tools, temp_dir, "dev.provisionprofile", MAS_PROFILE)
        profile = get_provisioning_profile(path)
        assert profile.file_path == path
        assert profile.name == "Store"
        assert fake_tools.calls == [["security", "cms", "-D", "-i", str(path)]]

    def test_keychain(self, fake_tools, temp_dir):
        path = add_profile(fake_tools, temp_dir, "dev.provisionprofile", MAS_PROFILE)
        get_provisioning_profile(path, keychain="build.keychain")
        assert fake_tools.calls[0][-2:] == ["-k", "build.keychain"]

    def test_decode_failure(self, fake_tools, temp_dir):
        fake_tools.fail("security", "cms", stderr="not a CMS message")
        with pytest.raises(CommandError) as exc_info:
            get_provisioning_profile(temp_dir / "bad.provisionprofile")
        assert exc_info.value.output == "not a CMS message"


class TestFindProvisioningProfiles:
    """Tests for profile discovery."""

    @pytest.fixture
    def profiles_dir(self, fake_tools, temp_dir):
        for name, message in [
            ("a-dev.provisionprofile", DEVELOPMENT_PROFILE),
            ("b-store.provisionprofile", MAS_PROFILE),
            ("c-direct.provisionprofile", DEVELOPER_ID_PROFILE),
        ]:
            add_profile(fake_tools, temp_dir, name, message)
        (temp_dir / "notes.txt").write_text("not a profile")
        return temp_dir

    def test_mas_distribution(self, profiles_dir):
        found = find_provisioning_profiles(
            "mas", "distribution", search_dirs=[profiles_dir]
        )
        assert [p.name for p in found] == ["Store"]

    def test_darwin_distribution(self, profiles_dir):
        found = find_provisioning_profiles(
            "darwin", "distribution", search_dirs=[profiles_dir]
        )
        assert [p.name for p in found] == ["Direct"]

    def test_development(self, profiles_dir):
        found = find_provisioning_profiles(
            "mas", "development", search_dirs=[profiles_dir]
        )
        assert [p.name for p in found] == ["Dev"]

    def test_only_profiles_decoded(self, fake_tools, profiles_dir):
        find_provisioning_profiles("mas", "distribution", search_dirs=[profiles_dir])
        decoded = [c[-1] for c in fake_tools.commands("security")]
        assert all(p.endswith(".provisionprofile") for p in decoded)
        assert len(decoded) == 3

    def test_current_directory(self, fake_tools, profiles_dir, monkeypatch):
        monkeypatch.chdir(profiles_dir)
        found = find_provisioning_profiles("darwin", "distribution")
        assert [p.name for p in found] == ["Direct"]


class TestEmbedProvisioningProfile:
    """Tests for copying a profile into the bundle."""

    def test_embed(self, empty_app, temp_dir):
        source = temp_dir / "app.provisionprofile"
        source.write_bytes(b"new profile")
        profile = ProvisioningProfile(source, MAS_PROFILE)

        embedded = embed_provisioning_profile(profile, empty_app / "Contents")
        assert embedded == empty_app / "Contents" / EMBEDDED_PROFILE_NAME
        assert embedded.read_bytes() == b"new profile"

    def test_replaces_existing(self, empty_app, temp_dir):
        existing = empty_app / "Contents" / EMBEDDED_PROFILE_NAME
        existing.write_bytes(b"old profile")
        source = temp_dir / "app.provisionprofile"
        source.write_bytes(b"new profile")

        embed_provisioning_profile(
            ProvisioningProfile(source, MAS_PROFILE), empty_app / "Contents"
        )
        assert existing.read_bytes() == b"new profile"


class TestPreEmbedProvisioningProfile:
    """Tests for the provisioning profile pre-sign operation."""

    def test_explicit_path(self, fake_tools, empty_app, temp_dir):
        path = add_profile(fake_tools, temp_dir, "app.provisionprofile", MAS_PROFILE)
        request = SigningRequest(
            empty_app,
            platform="mas",
            signing_type="distribution",
            provisioning_profile=path,
        )
        pre_embed_provisioning_profile(request)

        assert isinstance(request.provisioning_profile, ProvisioningProfile)
        embedded = empty_app / "Contents" / EMBEDDED_PROFILE_NAME
        assert embedded.read_bytes() == path.read_bytes()

    def test_explicit_path_unreadable(self, fake_tools, empty_app, temp_dir):
        fake_tools.fail("security", "cms")
        request = SigningRequest(
            empty_app,
            platform="mas",
            signing_type="distribution",
            provisioning_profile=temp_dir / "broken.provisionprofile",
        )
        with pytest.raises(ConfigurationError, match="Cannot read"):
            pre_embed_provisioning_profile(request)

    def test_discovered(self, fake_tools, empty_app, temp_dir, monkeypatch):
        add_profile(fake_tools, temp_dir, "store.provisionprofile", MAS_PROFILE)
        monkeypatch.chdir(temp_dir)
        request = SigningRequest(
            empty_app, platform="mas", signing_type="distribution"
        )
        pre_embed_provisioning_profile(request)

        assert request.provisioning_profile.name == "Store"
        assert (empty_app / "Contents" / EMBEDDED_PROFILE_NAME).exists()

    def test_none_found(self, fake_tools, empty_app, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        request = SigningRequest(
            empty_app, platform="mas", signing_type="distribution"
        )
        pre_embed_provisioning_profile(request)

        assert request.provisioning_profile is None
        assert not (empty_app / "Contents" / EMBEDDED_PROFILE_NAME).exists()
        assert fake_tools.calls == []
