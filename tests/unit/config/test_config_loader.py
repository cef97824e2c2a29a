"""Tests for config path resolution and the store registry."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from pydantic import ValidationError

from commit_tracer.config.config_loader import (
    HOME_CONFIG_DIR,
    ConfigStoreRegistry,
    resolve_config_path,
)
from commit_tracer.config.config_schema import (
    EMAIL_MAPPINGS_KEY,
    ConfigDocument,
    is_placeholder_token,
)


class TestResolveConfigPath:
    """Test config file precedence."""

    def test_explicit_path_wins(self, tmp_path):
        explicit = tmp_path / "custom.json"
        assert resolve_config_path(explicit, project_path=tmp_path / "proj") == explicit.resolve()

    def test_project_directory(self, tmp_path):
        assert resolve_config_path(project_path=tmp_path) == (tmp_path / ".env.json").resolve()

    def test_home_fallback(self, tmp_path):
        expected = (tmp_path / HOME_CONFIG_DIR / ".env.json").resolve()
        assert resolve_config_path(home=tmp_path) == expected


class TestConfigStoreRegistry:
    """Test that each file gets exactly one store."""

    def test_same_path_same_store(self, tmp_path):
        registry = ConfigStoreRegistry()
        first = registry.get(tmp_path / ".env.json")
        second = registry.get(str(tmp_path / "." / ".env.json"))
        assert first is second
        assert len(registry) == 1

    def test_different_paths_different_stores(self, tmp_path):
        registry = ConfigStoreRegistry()
        a = registry.get(tmp_path / "a.json")
        b = registry.get(tmp_path / "b.json")
        assert a is not b
        assert (tmp_path / "a.json") in registry
        assert 123 not in registry

    def test_for_project(self, tmp_path):
        registry = ConfigStoreRegistry()
        store = registry.for_project(project_path=tmp_path)
        assert store.config_path == (tmp_path / ".env.json").resolve()

    def test_concurrent_get_returns_single_store(self, tmp_path):
        registry = ConfigStoreRegistry()
        path = tmp_path / ".env.json"
        with ThreadPoolExecutor(max_workers=8) as pool:
            stores = list(pool.map(lambda _: registry.get(path), range(32)))
        assert len({id(s) for s in stores}) == 1


class TestConfigDocument:
    """Test the pydantic schema."""

    def test_unknown_keys_preserved(self):
        doc = ConfigDocument.model_validate({"hibobToken": "x", "somethingNew": [1, 2]})
        assert doc.to_raw() == {"hibobToken": "x", "somethingNew": [1, 2]}

    def test_field_names_are_not_aliases(self):
        doc = ConfigDocument.model_validate({"hibob_token": "x", "email_mappings": {"a@x.com": "b@x.com"}})
        assert doc.hibob_token is None
        assert doc.email_mappings == {}
        assert doc.to_raw() == {"hibob_token": "x", "email_mappings": {"a@x.com": "b@x.com"}}

    def test_non_string_mappings_dropped(self):
        doc = ConfigDocument.model_validate(
            {EMAIL_MAPPINGS_KEY: {"a@x.com": "b@x.com", "c@x.com": None, "d@x.com": 3}}
        )
        assert doc.email_mappings == {"a@x.com": "b@x.com"}

    def test_mappings_not_an_object(self):
        doc = ConfigDocument.model_validate({EMAIL_MAPPINGS_KEY: ["a", "b"]})
        assert doc.email_mappings == {}

    def test_default_template(self):
        raw = ConfigDocument.default().to_raw()
        assert set(raw) == {
            "youtrackToken",
            "youtrackUrl",
            "hibobToken",
            "hibobApiUrl",
            EMAIL_MAPPINGS_KEY,
        }

    def test_rejects_non_mapping_document(self):
        with pytest.raises(ValidationError):
            ConfigDocument.model_validate(["not", "a", "dict"])

    @pytest.mark.parametrize(
        "token,expected",
        [
            (None, True),
            ("", True),
            ("   ", True),
            ("your-hibob-token-here", True),
            ("your-youtrack-token-here", True),
            ("real-token", False),
        ],
    )
    def test_is_placeholder_token(self, token, expected):
        assert is_placeholder_token(token) is expected
