"""Tests for the profile registry."""

import pytest

from codeskel.index._internal.languages import (
    PROFILES,
    JavascriptProfile,
    enabled_profiles,
    get_profile,
    get_profile_for_path,
)


class TestRegistry:
    def test_given_registry_when_listed_then_bundled_languages(self) -> None:
        assert set(PROFILES) == {"javascript", "python"}

    def test_given_name_when_get_profile_then_shared_instance(self) -> None:
        assert get_profile("javascript") is PROFILES["javascript"]
        assert get_profile("cobol") is None

    def test_given_unknown_names_when_enabled_then_skipped(self) -> None:
        """Configured names without a profile are ignored."""
        # When
        selected = enabled_profiles(["javascript", "rust"])

        # Then
        assert list(selected) == ["javascript"]

    @pytest.mark.parametrize("path", ["a.js", "a.mjs", "lib/a.cjs", "ui/App.jsx"])
    def test_given_js_suffix_when_looked_up_then_js_profile(self, path: str) -> None:
        assert isinstance(get_profile_for_path(path), JavascriptProfile)

    @pytest.mark.parametrize("path", ["README", "notes.md", "Makefile"])
    def test_given_other_file_when_looked_up_then_none(self, path: str) -> None:
        assert get_profile_for_path(path) is None

    def test_given_restricted_profiles_when_looked_up_then_only_those(self) -> None:
        # Given
        js_only = enabled_profiles(["javascript"])

        # Then
        assert get_profile_for_path("a.py", js_only) is None
