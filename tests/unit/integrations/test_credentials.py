"""Tests for credential stores and email normalization."""

import json

import pytest

from commit_tracer.config.config_schema import DEFAULT_HIBOB_URL
from commit_tracer.config.config_store import ConfigStore
from commit_tracer.integrations.credentials import ConfigCredentialStore, InMemoryCredentialStore
from commit_tracer.integrations.normalizer import EmailNormalizer


@pytest.fixture
def store(tmp_path) -> ConfigStore:
    path = tmp_path / ".env.json"
    path.write_text(
        json.dumps(
            {
                "hibobToken": "  token-123  ",
                "emailMappings": {
                    "Dev@Gmail.com": "Dev@Company.com",
                    "a@home.net": "b@home.net",
                    "b@home.net": "c@company.com",
                },
            }
        )
    )
    return ConfigStore(path)


class TestConfigCredentialStore:
    """Test credentials kept in the config file."""

    def test_token_is_stripped(self, store):
        assert ConfigCredentialStore(store).get_token() == "token-123"

    def test_base_url_defaults(self, store):
        assert ConfigCredentialStore(store).get_base_url() == DEFAULT_HIBOB_URL

    def test_blank_token_is_none(self, store):
        store.update("hibobToken", "   ")
        assert ConfigCredentialStore(store).get_token() is None

    def test_set_credentials_persists(self, store):
        credentials = ConfigCredentialStore(store)
        assert credentials.set_credentials("new", "https://hibob.test/v1") is True

        data = json.loads(store.config_path.read_text())
        assert data["hibobToken"] == "new"
        assert data["hibobApiUrl"] == "https://hibob.test/v1"


class TestInMemoryCredentialStore:
    def test_round_trip(self):
        credentials = InMemoryCredentialStore()
        assert credentials.get_token() is None
        credentials.set_credentials("t", "https://x.test")
        assert credentials.get_token() == "t"
        assert credentials.get_base_url() == "https://x.test"


class TestEmailNormalizer:
    """Test personal-to-corporate address mapping."""

    def test_mapped_address(self, store):
        normalizer = EmailNormalizer(store)
        assert normalizer.map("dev@gmail.com") == "Dev@Company.com"

    def test_target_returned_as_stored(self, store):
        """Test the target's case is not altered."""
        assert EmailNormalizer(store)("DEV@GMAIL.COM") == "Dev@Company.com"

    def test_unmapped_address_unchanged(self, store):
        assert EmailNormalizer(store).map("Stranger@Company.com") == "Stranger@Company.com"

    def test_single_hop_only(self, store):
        normalizer = EmailNormalizer(store)
        assert normalizer.map("a@home.net") == "b@home.net"
        assert normalizer.map(normalizer.map("a@home.net")) == "c@company.com"
