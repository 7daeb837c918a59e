"""
Tests for the configuration, authorization gate, asset store and identity client.
"""

import httpx
import pytest
from omegaconf.errors import ConfigKeyError

from bookstore_backend.asset_store import AssetStore
from bookstore_backend.authorization import can_publish
from bookstore_backend.configuration import make_runtime_config
from bookstore_backend.errors import ActionNotAllowed, NotAuthenticated
from bookstore_backend.identity import IdentityClient
from bookstore_backend.models import Identity
from bookstore_backend.validation import PublicationPolicy

RELEASE = {"user_id": "user-1"}


class TestConfiguration:
    def test_defaults_build_a_policy(self):
        config = make_runtime_config()
        policy = PublicationPolicy.from_config(config.validation)

        assert policy.print_cover.pages == 1
        assert policy.print_file.min_pages < policy.print_file.max_pages

    def test_overrides_are_merged(self):
        config = make_runtime_config({"validation": {"print_file": {"min_pages": 48}}})

        assert config.validation.print_file.min_pages == 48
        assert config.validation.print_file.max_pages == 800

    def test_unknown_keys_are_rejected(self):
        with pytest.raises(ConfigKeyError):
            make_runtime_config({"validation": {"unknown_rule": 1}})

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ADMIN_USER_IDS", "7, 12")
        monkeypatch.setenv("ASSET_BASE_URL", "https://assets.example")

        config = make_runtime_config()

        assert list(config.admins) == ["7", "12"]
        assert config.assets.base_url == "https://assets.example"


class TestAuthorization:
    def test_owner_allowed(self):
        assert can_publish(Identity(user_id="user-1"), RELEASE, admins=[]) is True

    def test_admin_allowed(self):
        assert can_publish(Identity(user_id="admin-1"), RELEASE, admins=["admin-1"]) is True

    def test_missing_identity(self):
        with pytest.raises(NotAuthenticated):
            can_publish(None, RELEASE, admins=["admin-1"])

    def test_other_user(self):
        with pytest.raises(ActionNotAllowed):
            can_publish(Identity(user_id="user-2"), RELEASE, admins=["admin-1"])


class TestAssetStore:
    def test_public_url_without_bucket(self):
        store = AssetStore(base_url="https://cdn.test/")
        assert store.resolve_retrieval_url("abc") == "https://cdn.test/abc"

    def test_presigned_url_with_bucket(self, monkeypatch):
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "eu-central-1")
        store = AssetStore(base_url="https://cdn.test", bucket_name="print-assets", expiration=60)

        url = store.resolve_retrieval_url("abc")

        assert "print-assets" in url
        assert "abc" in url
        assert "Signature" in url or "X-Amz-Signature" in url


class TestIdentityClient:
    def _client(self, handler):
        return IdentityClient("https://identity.test/v1", transport=httpx.MockTransport(handler))

    def test_no_token(self):
        assert self._client(lambda request: httpx.Response(500)).resolve_identity(None) is None

    def test_resolves_user_id(self):
        def handler(request):
            assert request.url.path == "/v1/user"
            assert request.headers["Authorization"] == "token-1"
            return httpx.Response(200, json={"id": 42, "email": "author@example.com"})

        assert self._client(handler).resolve_identity("token-1") == Identity(user_id="42")

    def test_rejected_token(self):
        assert self._client(lambda request: httpx.Response(401)).resolve_identity("expired") is None

    def test_platform_failure_propagates(self):
        with pytest.raises(httpx.HTTPStatusError):
            self._client(lambda request: httpx.Response(503)).resolve_identity("token-1")
