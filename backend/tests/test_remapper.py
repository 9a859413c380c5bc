"""Unit tests for EnumRemapper."""

from __future__ import annotations

import pytest

from docmigrate.engine.remapper import EnumRemapper

PURPOSE_MAP = {
    "registration": "signup",
    "verification": "signup",
    "password-reset": "login",
}


@pytest.fixture
def purposes() -> EnumRemapper:
    return EnumRemapper(PURPOSE_MAP, ("signup", "login"), "login")


class TestRemap:
    @pytest.mark.parametrize(
        "old, new",
        [
            ("registration", "signup"),
            ("verification", "signup"),
            ("password-reset", "login"),
        ],
    )
    def test_legacy_values(self, purposes, old, new):
        assert purposes.remap(old) == new

    def test_valid_value_kept(self, purposes):
        assert purposes.remap("signup") == "signup"

    def test_unknown_value_defaults(self, purposes):
        assert purposes.remap("some-unknown-value") == "login"

    def test_absent_defaults(self, purposes):
        assert purposes.remap(None) == "login"
        assert purposes.remap("") == "login"

    def test_unhashable_value_defaults(self, purposes):
        assert purposes.remap(["signup"]) == "login"

    def test_non_string_defaults(self, purposes):
        assert purposes.remap(7) == "login"

    def test_mapping_into_invalid_value_defaults(self):
        remapper = EnumRemapper({"old": "retired"}, ("a", "b"), "a")
        assert remapper.remap("old") == "a"


class TestConstruction:
    def test_default_must_be_valid(self):
        with pytest.raises(ValueError):
            EnumRemapper(PURPOSE_MAP, ("signup", "login"), "unknown")
