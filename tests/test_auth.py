"""Unit tests for API key authentication module."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException

from quota_api.core.auth import (
    parse_api_keys,
    validate_api_key,
    verify_admin_api_key,
    verify_api_key,
)
from quota_api.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_multiple_keys(self) -> None:
        assert parse_api_keys("key1,key2,key3") == {"key1", "key2", "key3"}

    def test_parse_keys_with_whitespace(self) -> None:
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("raw", [None, "", "   ,  ,  "])
    def test_parse_empty_values(self, raw) -> None:
        assert parse_api_keys(raw) == set()


class TestValidateAPIKey:
    """Client and admin key scopes."""

    @patch("quota_api.core.auth.settings")
    def test_validate_bypassed_when_auth_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        validate_api_key("any-random-key")
        validate_api_key("", admin=True)

    @patch("quota_api.core.auth.settings")
    def test_client_scope_accepts_client_and_admin_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "client-1"
        mock_settings.app.admin_api_keys = "admin-1"

        validate_api_key("client-1")
        validate_api_key("admin-1")

    @patch("quota_api.core.auth.settings")
    def test_admin_scope_rejects_client_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "client-1"
        mock_settings.app.admin_api_keys = "admin-1"

        validate_api_key("admin-1", admin=True)
        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("client-1", admin=True)

        assert exc_info.value.code == "invalid_api_key"

    @patch("quota_api.core.auth.settings")
    def test_raises_when_no_keys_configured(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = None
        mock_settings.app.admin_api_keys = ""

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key")

        assert exc_info.value.code == "api_keys_not_configured"

    @patch("quota_api.core.auth.settings")
    def test_admin_scope_unconfigured_even_with_client_keys(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "client-1"
        mock_settings.app.admin_api_keys = None

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("client-1", admin=True)

        assert exc_info.value.code == "api_keys_not_configured"
        assert "admin" in exc_info.value.message


class TestVerifyDependencies:
    @pytest.mark.asyncio
    @patch("quota_api.core.auth.settings")
    async def test_missing_header_is_403(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"
        mock_settings.app.admin_api_keys = None

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key=None)

        assert exc_info.value.status_code == 403
        assert "Missing API key" in exc_info.value.detail

    @pytest.mark.asyncio
    @patch("quota_api.core.auth.settings")
    async def test_invalid_key_is_403(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "valid-key"
        mock_settings.app.admin_api_keys = None

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(x_api_key="wrong-key")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    @patch("quota_api.core.auth.settings")
    async def test_admin_dependency(self, mock_settings) -> None:
        mock_settings.app.api_key_required = True
        mock_settings.app.api_keys = "client-1"
        mock_settings.app.admin_api_keys = "admin-1"

        await verify_admin_api_key(x_api_key="admin-1")
        with pytest.raises(HTTPException) as exc_info:
            await verify_admin_api_key(x_api_key="client-1")

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    @patch("quota_api.core.auth.settings")
    async def test_bypassed_without_header_when_disabled(self, mock_settings) -> None:
        mock_settings.app.api_key_required = False

        await verify_api_key(x_api_key=None)
        await verify_admin_api_key(x_api_key=None)
