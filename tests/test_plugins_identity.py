"""Tests for plugbay.plugins.identity."""

import hashlib
import os
from pathlib import Path

import pytest

from plugbay.plugins.errors import InvalidPluginNameError
from plugbay.plugins.identity import derive_id, path_fragment, validate_name


class TestDeriveId:
    def test_sha256_hex_of_name(self):
        assert derive_id("hello") == hashlib.sha256(b"hello").hexdigest()

    def test_fixed_length_lowercase(self):
        plugin_id = derive_id("vendor/Some-Plugin")
        assert len(plugin_id) == 64
        assert plugin_id == plugin_id.lower()

    def test_deterministic(self):
        assert derive_id("a/b") == derive_id("a/b")

    def test_distinct_names_distinct_ids(self):
        assert derive_id("a") != derive_id("b")

    def test_utf8_bytes(self):
        assert derive_id("plüg") == hashlib.sha256("plüg".encode("utf-8")).hexdigest()


class TestPathFragment:
    def test_plain_name(self):
        assert path_fragment("hello") == Path("hello")

    def test_namespaced_name_uses_host_separator(self):
        fragment = path_fragment("vendor/tools/hello")
        assert fragment == Path("vendor", "tools", "hello")
        assert str(fragment) == os.path.join("vendor", "tools", "hello")

    def test_rejects_traversal(self):
        with pytest.raises(InvalidPluginNameError):
            path_fragment("../escape")


class TestValidateName:
    @pytest.mark.parametrize("name", ["hello", "vendor/hello", "a.b", "my-plugin_2", "v/..x"])
    def test_valid_names(self, name):
        assert validate_name(name) == name

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "   ",
            "..",
            ".",
            "../evil",
            "a/../b",
            "a/./b",
            "a//b",
            "trailing/",
            "/absolute",
            "C:/windows",
            "a\\b",
            "nul\x00byte",
        ],
    )
    def test_invalid_names(self, name):
        with pytest.raises(InvalidPluginNameError):
            validate_name(name)

    def test_invalid_name_is_value_error(self):
        with pytest.raises(ValueError):
            validate_name("../x")

    def test_error_mentions_name(self):
        with pytest.raises(InvalidPluginNameError, match="evil"):
            validate_name("../evil")

    @pytest.mark.parametrize(
        "name",
        [
            ".plugbay.lock",
            ".plugbay.lock/inner",
            f"{'a' * 64}.meta",
            f"{'0' * 64}.tmp",
        ],
    )
    def test_registry_file_names_reserved(self, name):
        with pytest.raises(InvalidPluginNameError, match="reserved"):
            validate_name(name)

    @pytest.mark.parametrize("name", ["foo.meta", "vendor/.plugbay.lock", f"ns/{'a' * 64}.meta"])
    def test_reserved_only_at_top_level(self, name):
        assert validate_name(name) == name
