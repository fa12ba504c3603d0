"""
Unit tests for Firebase sign-in and the auth session.

HTTP calls to Identity Toolkit are replaced by a mocked requests session.
"""
from unittest.mock import Mock, patch

import pytest

from dashboard.auth import (CUSTOMER_MARKER, USER_MARKER, AuthSession, AuthUser, FirebaseAuthClient,
                            error_message)
from dashboard.errors import AuthenticationError, ProfileNotFoundError

from .conftest import FakeDocumentStore


def _http(status_code=200, body=None):
    http = Mock()
    response = Mock(status_code=status_code)
    response.json.return_value = body or {}
    http.post.return_value = response
    return http


def _ok(uid="u1", email="boss@example.com"):
    return _http(200, {"localId": uid, "email": email, "idToken": "token-123"})


@pytest.fixture
def db():
    return FakeDocumentStore({
        "users": {
            "u1": {"role": "super_admin", "name": "Boss", "branchId": "b1", "branchName": "Downtown"},
            "u2": {"name": "Branch manager"},
        },
        "customers": {"c1": {"name": "Casey", "phone": "555"}},
    })


class TestFirebaseAuthClient:
    def test_sign_in_publishes_user(self):
        client = FirebaseAuthClient("key", http=_ok())
        seen = []
        client.auth_state.subscribe(seen.append)

        user = client.sign_in_with_password("boss@example.com", "pw")

        assert user == AuthUser("u1", "boss@example.com", "token-123")
        assert seen == [user]
        _, kwargs = client._http.post.call_args
        assert kwargs["params"] == {"key": "key"}
        assert kwargs["json"]["returnSecureToken"] is True

    @pytest.mark.parametrize("code, message", [
        ("EMAIL_NOT_FOUND", "User not found"),
        ("INVALID_PASSWORD", "Incorrect password"),
        ("INVALID_EMAIL", "Invalid email address"),
        ("INVALID_LOGIN_CREDENTIALS", "Invalid email or password"),
        ("TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled", "Login failed"),
    ])
    def test_sign_in_error_codes(self, code, message):
        client = FirebaseAuthClient("key", http=_http(400, {"error": {"message": code}}))

        with pytest.raises(AuthenticationError) as exc_info:
            client.sign_in_with_password("x@example.com", "pw")

        assert str(exc_info.value) == message
        assert exc_info.value.code == code
        assert client.current_user is None

    def test_error_message_strips_detail(self):
        assert error_message("INVALID_PASSWORD : The password is invalid") == "Incorrect password"

    def test_sign_out_publishes_none(self):
        client = FirebaseAuthClient("key", http=_ok())
        client.sign_in_with_password("boss@example.com", "pw")
        seen = []
        client.auth_state.subscribe(seen.append)

        client.sign_out()

        assert seen == [None]
        assert client.current_user is None

    @patch("dashboard.auth.resolve_project", return_value="demo-project")
    @patch("dashboard.auth.id_token.verify_firebase_token")
    def test_verify_id_token(self, mock_verify, _project):
        mock_verify.return_value = {"user_id": "u1"}
        client = FirebaseAuthClient("key", http=_ok())

        assert client.verify_id_token("tok") == {"user_id": "u1"}
        assert mock_verify.call_args.kwargs["audience"] == "demo-project"

    @patch("dashboard.auth.resolve_project", return_value="demo-project")
    @patch("dashboard.auth.id_token.verify_firebase_token", side_effect=ValueError("expired"))
    def test_verify_id_token_invalid(self, _verify, _project):
        client = FirebaseAuthClient("key", http=_ok())

        with pytest.raises(AuthenticationError):
            client.verify_id_token("tok")


class TestAuthSessionLogin:
    def test_super_admin_redirect(self, db):
        session = AuthSession(FirebaseAuthClient("key", http=_ok("u1")), db)

        result = session.login("boss@example.com", "pw")

        assert result.user.role == "super_admin"
        assert result.user.branch_name == "Downtown"
        assert result.redirect == "/super-admin"
        assert result.id_token == "token-123"
        assert session.markers[USER_MARKER]["id"] == "u1"

    def test_role_defaults_to_admin(self, db):
        session = AuthSession(FirebaseAuthClient("key", http=_ok("u2")), db)

        result = session.login("mgr@example.com", "pw")

        assert result.user.role == "admin"
        assert result.redirect == "/admin"

    def test_customer_login(self, db):
        session = AuthSession(FirebaseAuthClient("key", http=_ok("c1", "casey@example.com")), db)

        result = session.login("casey@example.com", "pw", is_customer=True)

        assert result.user.role == "customer"
        assert result.redirect == "/customer/portal"
        assert session.markers[CUSTOMER_MARKER]["isAuthenticated"] is True

    def test_missing_profile_signs_out(self, db):
        client = FirebaseAuthClient("key", http=_ok("nobody"))
        session = AuthSession(client, db)

        with pytest.raises(ProfileNotFoundError):
            session.login("nobody@example.com", "pw")

        assert client.current_user is None
        assert session.user is None
        assert USER_MARKER not in session.markers

    def test_profile_lookup_failure_forces_sign_out(self, db):
        db.failing_reads.add("users")
        client = FirebaseAuthClient("key", http=_ok("u1"))
        session = AuthSession(client, db)
        session.markers[CUSTOMER_MARKER] = {"stale": True}

        with pytest.raises(AuthenticationError) as exc_info:
            session.login("boss@example.com", "pw")

        assert str(exc_info.value) == "Login failed"

        assert client.current_user is None
        assert session.markers == {}

    def test_logout_redirects(self, db):
        session = AuthSession(FirebaseAuthClient("key", http=_ok("c1")), db)
        session.login("casey@example.com", "pw", is_customer=True)

        assert session.logout() == "/customer/login"
        assert session.markers == {}

        admin = AuthSession(FirebaseAuthClient("key", http=_ok("u1")), db)
        admin.login("boss@example.com", "pw")
        assert admin.logout() == "/login"


class TestAuthStateChanges:
    def test_pending_customer_document_is_created(self, db):
        client = FirebaseAuthClient("key", http=_ok("new-uid", "new@example.com"))
        session = AuthSession(client, db)
        session.markers[CUSTOMER_MARKER] = {"customer": {"id": "new-uid", "name": "Newbie", "phone": "1"}}

        client.sign_in_with_password("new@example.com", "pw")

        assert db.collections["customers"]["new-uid"]["status"] == "active"
        assert session.user.role == "customer"
        assert session.user.name == "Newbie"

    def test_closed_session_ignores_changes(self, db):
        client = FirebaseAuthClient("key", http=_ok("u1"))
        session = AuthSession(client, db)
        session.close()

        client.sign_in_with_password("boss@example.com", "pw")

        assert session.user is None
