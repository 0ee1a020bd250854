"""Tests for plugbay.plugins.meta."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from plugbay.plugins.errors import (
    InvalidPluginNameError,
    PluginInstallError,
    PluginNotFoundError,
    RegistryIOError,
)
from plugbay.plugins.identity import derive_id
from plugbay.plugins.image import PluginImage, build_image, open_image, read_manifest
from plugbay.plugins.meta import Meta

_BINARY = b"\x7fELF fake plugin object"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _install(root: Path, name: str, images: Path, **manifest) -> Meta:
    images.mkdir(parents=True, exist_ok=True)
    image_path = build_image(
        images / f"{name.replace('/', '_')}.img",
        _BINARY,
        {"name": name, **manifest},
    )
    meta = Meta(name=name, root_dir=root)
    with open_image(image_path) as image:
        meta.install(image, read_manifest(image))
    return meta


# ---------------------------------------------------------------------------
# Derived locations
# ---------------------------------------------------------------------------

class TestMetaPaths:
    def test_paths_derived_from_name(self, tmp_path):
        meta = Meta(name="vendor/hello", root_dir=tmp_path)
        assert meta.path == tmp_path / "vendor" / "hello"
        assert meta.image_path == tmp_path / "vendor" / "hello" / "object.img"
        assert meta.binary_path == tmp_path / "vendor" / "hello" / "object.so"
        assert meta.config_path == tmp_path / "vendor" / "hello" / "config.json"

    def test_meta_file_is_id_named_in_root(self, tmp_path):
        meta = Meta(name="vendor/hello", root_dir=tmp_path)
        assert meta.meta_path == tmp_path / f"{derive_id('vendor/hello')}.meta"

    def test_image_name_is_absolute(self, tmp_path):
        meta = Meta(name="hello", root_dir=tmp_path)
        assert meta.image_name().is_absolute()
        assert meta.image_name() == meta.image_path.absolute()

    def test_root_dir_coerced_to_path(self, tmp_path):
        meta = Meta(name="hello", root_dir=str(tmp_path))
        assert isinstance(meta.root_dir, Path)

    def test_invalid_name_rejected(self, tmp_path):
        with pytest.raises(InvalidPluginNameError):
            Meta(name="../evil", root_dir=tmp_path)

    def test_to_dict(self, tmp_path):
        meta = Meta(name="hello", root_dir=tmp_path, enabled=False)
        d = meta.to_dict()
        assert d["name"] == "hello"
        assert d["enabled"] is False
        assert d["binary"] == str(tmp_path / "hello" / "object.so")


# ---------------------------------------------------------------------------
# Install
# ---------------------------------------------------------------------------

class TestMetaInstall:
    def test_writes_all_files(self, tmp_path):
        root = tmp_path / "root"
        meta = _install(root, "hello", tmp_path / "images")

        assert meta.image_path.read_bytes() == (tmp_path / "images" / "hello.img").read_bytes()
        assert meta.binary_path.read_bytes() == _BINARY
        assert meta.config_path.is_file()
        assert meta.meta_path.is_file()
        assert meta.missing_artifacts() == []

    def test_meta_file_content(self, tmp_path):
        meta = _install(tmp_path / "root", "vendor/hello", tmp_path / "images")
        record = json.loads(meta.meta_path.read_text())
        assert record == {"name": "vendor/hello", "enabled": True}

    def test_default_config_from_manifest(self, tmp_path):
        meta = _install(
            tmp_path / "root", "hello", tmp_path / "images", config={"greeting": "hi"}
        )
        config = json.loads(meta.config_path.read_text())
        assert config == {
            "plugin": "hello",
            "binary": "object.so",
            "options": {"greeting": "hi"},
        }

    def test_failed_step_named_and_no_meta_file(self, tmp_path, monkeypatch):
        def fail(self, dest):
            raise OSError("disk full")

        monkeypatch.setattr(PluginImage, "extract_binary", fail)

        with pytest.raises(PluginInstallError) as exc_info:
            _install(tmp_path / "root", "hello", tmp_path / "images")

        assert exc_info.value.step == "extract binary"
        assert isinstance(exc_info.value.original, OSError)
        assert not Meta(name="hello", root_dir=tmp_path / "root").meta_path.exists()


# ---------------------------------------------------------------------------
# Uninstall
# ---------------------------------------------------------------------------

class TestMetaUninstall:
    def test_removes_files_and_prunes_dirs(self, tmp_path):
        root = tmp_path / "root"
        meta = _install(root, "vendor/tools/hello", tmp_path / "images")

        meta.uninstall()

        assert not meta.meta_path.exists()
        assert not (root / "vendor").exists()
        assert root.is_dir()

    def test_tolerates_missing_files(self, tmp_path):
        meta = _install(tmp_path / "root", "hello", tmp_path / "images")
        meta.binary_path.unlink()
        meta.config_path.unlink()

        meta.uninstall()

        assert not meta.path.exists()
        assert not meta.meta_path.exists()

    def test_keeps_sibling_in_namespace(self, tmp_path):
        root = tmp_path / "root"
        a = _install(root, "vendor/a", tmp_path / "images")
        b = _install(root, "vendor/b", tmp_path / "images")

        a.uninstall()

        assert not a.path.exists()
        assert b.missing_artifacts() == []
        assert b.meta_path.is_file()

    def test_keeps_nested_plugin(self, tmp_path):
        root = tmp_path / "root"
        outer = _install(root, "vendor", tmp_path / "images")
        inner = _install(root, "vendor/a", tmp_path / "images")

        outer.uninstall()

        assert not outer.image_path.exists()
        assert not outer.meta_path.exists()
        assert inner.missing_artifacts() == []

    def test_unremovable_file_raises(self, tmp_path, monkeypatch):
        meta = _install(tmp_path / "root", "hello", tmp_path / "images")

        def fail(self, missing_ok=False):
            raise PermissionError("read-only")

        monkeypatch.setattr(Path, "unlink", fail)

        with pytest.raises(RegistryIOError):
            meta.uninstall()

    def test_partial_failure_drops_record_first(self, tmp_path, monkeypatch):
        root = tmp_path / "root"
        meta = _install(root, "hello", tmp_path / "images")
        real_unlink = Path.unlink

        def fail_on_binary(self, missing_ok=False):
            if self.name == "object.so":
                raise PermissionError("busy")
            return real_unlink(self, missing_ok=missing_ok)

        monkeypatch.setattr(Path, "unlink", fail_on_binary)

        with pytest.raises(RegistryIOError):
            meta.uninstall()

        assert not meta.meta_path.exists()
        with pytest.raises(PluginNotFoundError):
            Meta.load(root, "hello")


# ---------------------------------------------------------------------------
# Enable / disable
# ---------------------------------------------------------------------------

class TestMetaState:
    def test_disable_rewrites_meta_file(self, tmp_path):
        meta = _install(tmp_path / "root", "hello", tmp_path / "images")
        meta.disable()

        assert meta.enabled is False
        assert json.loads(meta.meta_path.read_text())["enabled"] is False

    def test_enable_after_disable(self, tmp_path):
        meta = _install(tmp_path / "root", "hello", tmp_path / "images")
        meta.disable()
        meta.enable()

        assert Meta.load(tmp_path / "root", "hello").enabled is True

    def test_write_failure_keeps_previous_state(self, tmp_path, monkeypatch):
        meta = _install(tmp_path / "root", "hello", tmp_path / "images")

        def fail(self):
            raise OSError("read-only")

        monkeypatch.setattr(Meta, "_write_meta", fail)

        with pytest.raises(RegistryIOError):
            meta.disable()
        assert meta.enabled is True

    def test_no_temporary_file_left(self, tmp_path):
        root = tmp_path / "root"
        meta = _install(root, "hello", tmp_path / "images")
        meta.disable()
        assert list(root.glob("*.tmp")) == []


# ---------------------------------------------------------------------------
# Load
# ---------------------------------------------------------------------------

class TestMetaLoad:
    def test_load_installed(self, tmp_path):
        _install(tmp_path / "root", "vendor/hello", tmp_path / "images")
        meta = Meta.load(tmp_path / "root", "vendor/hello")
        assert meta.name == "vendor/hello"
        assert meta.enabled is True
        assert meta.root_dir == tmp_path / "root"

    def test_load_missing(self, tmp_path):
        with pytest.raises(PluginNotFoundError, match="nope"):
            Meta.load(tmp_path, "nope")

    def test_load_invalid_name(self, tmp_path):
        with pytest.raises(InvalidPluginNameError):
            Meta.load(tmp_path, "../nope")

    def test_load_unparseable_record(self, tmp_path):
        (tmp_path / f"{derive_id('hello')}.meta").write_text("{garbage")
        with pytest.raises(PluginNotFoundError):
            Meta.load(tmp_path, "hello")

    def test_load_record_for_other_name(self, tmp_path):
        (tmp_path / f"{derive_id('hello')}.meta").write_text(
            json.dumps({"name": "other", "enabled": True})
        )
        with pytest.raises(PluginNotFoundError):
            Meta.load(tmp_path, "hello")

    def test_from_file_defaults_root_to_parent(self, tmp_path):
        meta_path = tmp_path / "x.meta"
        meta_path.write_text(json.dumps({"name": "hello", "enabled": False}))
        meta = Meta.from_file(meta_path)
        assert meta.root_dir == tmp_path
        assert meta.enabled is False

    def test_from_file_invalid_record(self, tmp_path):
        meta_path = tmp_path / "x.meta"
        meta_path.write_text(json.dumps({"enabled": True}))
        with pytest.raises(ValidationError):
            Meta.from_file(meta_path)

    def test_from_file_unreadable(self, tmp_path):
        with pytest.raises(RegistryIOError):
            Meta.from_file(tmp_path / "missing.meta")

    def test_load_undecodable_record(self, tmp_path):
        (tmp_path / f"{derive_id('hello')}.meta").write_bytes(b"\xff\xfe{}")
        with pytest.raises(PluginNotFoundError):
            Meta.load(tmp_path, "hello")

    def test_from_file_undecodable_record(self, tmp_path):
        meta_path = tmp_path / "x.meta"
        meta_path.write_bytes(b'{"name": "\xff"}')
        with pytest.raises(ValidationError):
            Meta.from_file(meta_path)
