"""Unit tests for auth/identity.py and auth/login.py -- the two blocking HTTP exchanges.

The module-level requests.Session in each module is patched; responses are
real requests.Response objects from the make_response fixture.
"""

from unittest.mock import patch

import pytest
import requests

from auth.identity import resolve_identity
from auth.login import request_credential
from core.errors import IdentityResolutionError, LoginError, NetworkError
from core.models import Identity

# ---------------------------------------------------------------------------
# resolve_identity
# ---------------------------------------------------------------------------


class TestResolveIdentity:
    def test_maps_profile_to_identity(self, settings, make_response):
        with patch("auth.identity._session") as http:
            http.get.return_value = make_response(200, {"id": 7, "name": "Ada", "slug": "ada"})
            identity = resolve_identity("tok-1", settings)
        assert identity == Identity(id=7, display_name="Ada")

    def test_sends_bearer_header_to_identity_url(self, settings, make_response):
        with patch("auth.identity._session") as http:
            http.get.return_value = make_response(200, {"id": 7, "name": "Ada"})
            resolve_identity("tok-1", settings)
        args, kwargs = http.get.call_args
        assert args[0] == "http://nexus.test/wp-json/wp/v2/users/me"
        assert kwargs["headers"]["Authorization"] == "Bearer tok-1"
        assert kwargs["timeout"] == 5

    def test_falls_back_to_slug_when_name_empty(self, settings, make_response):
        with patch("auth.identity._session") as http:
            http.get.return_value = make_response(200, {"id": 3, "name": "", "slug": "grace"})
            identity = resolve_identity("tok-1", settings)
        assert identity.display_name == "grace"

    @pytest.mark.parametrize("status", [401, 403, 500])
    def test_non_success_status_is_resolution_error(self, settings, make_response, status):
        with patch("auth.identity._session") as http:
            http.get.return_value = make_response(status, {"code": "jwt_auth_invalid_token"})
            with pytest.raises(IdentityResolutionError):
                resolve_identity("tok-1", settings)

    def test_payload_without_id_is_resolution_error(self, settings, make_response):
        with patch("auth.identity._session") as http:
            http.get.return_value = make_response(200, {"name": "Ada"})
            with pytest.raises(IdentityResolutionError, match="Unexpected identity payload"):
                resolve_identity("tok-1", settings)

    def test_non_json_payload_is_resolution_error(self, settings, make_response):
        with patch("auth.identity._session") as http:
            http.get.return_value = make_response(200, raw=b"<html>maintenance</html>")
            with pytest.raises(IdentityResolutionError):
                resolve_identity("tok-1", settings)

    def test_connection_failure_is_network_error(self, settings):
        with patch("auth.identity._session") as http:
            http.get.side_effect = requests.ConnectionError("connection refused")
            with pytest.raises(NetworkError, match="connection refused"):
                resolve_identity("tok-1", settings)


# ---------------------------------------------------------------------------
# request_credential
# ---------------------------------------------------------------------------


class TestRequestCredential:
    def test_returns_token(self, settings, make_response):
        with patch("auth.login._session") as http:
            http.post.return_value = make_response(200, {"token": "tok-1", "user_display_name": "Ada"})
            assert request_credential("ada", "secret", settings) == "tok-1"
        args, kwargs = http.post.call_args
        assert args[0] == "http://nexus.test/wp-json/jwt-auth/v1/token"
        assert kwargs["json"] == {"username": "ada", "password": "secret"}

    def test_server_message_surfaces_in_login_error(self, settings, make_response):
        with patch("auth.login._session") as http:
            http.post.return_value = make_response(
                403, {"code": "[jwt_auth] incorrect_password", "message": "The password you entered is incorrect."}
            )
            with pytest.raises(LoginError, match="password you entered is incorrect") as exc_info:
                request_credential("ada", "wrong", settings)
        assert exc_info.value.status_code == 403

    def test_numeric_error_code_keeps_server_message(self, settings, make_response):
        with patch("auth.login._session") as http:
            http.post.return_value = make_response(429, {"code": 429, "message": "Too many login attempts."})
            with pytest.raises(LoginError, match="Too many login attempts"):
                request_credential("ada", "secret", settings)

    def test_non_json_failure_uses_default_message(self, settings, make_response):
        with patch("auth.login._session") as http:
            http.post.return_value = make_response(502, raw=b"Bad Gateway", reason="Bad Gateway")
            with pytest.raises(LoginError, match="Please check your credentials"):
                request_credential("ada", "secret", settings)

    def test_success_without_token_is_login_error(self, settings, make_response):
        with patch("auth.login._session") as http:
            http.post.return_value = make_response(200, {"user_email": "ada@example.com"})
            with pytest.raises(LoginError, match="did not contain a token"):
                request_credential("ada", "secret", settings)

    def test_timeout_is_network_error(self, settings):
        with patch("auth.login._session") as http:
            http.post.side_effect = requests.Timeout("read timed out")
            with pytest.raises(NetworkError):
                request_credential("ada", "secret", settings)
