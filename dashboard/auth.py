"""
Firebase Authentication client and the admin session built on top of it.

Password sign-in goes through the Identity Toolkit REST API; ID tokens sent by
the dashboard are verified with google-auth. After sign-in the role comes from
the `users` profile document (or `customers` for the customer portal).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import google.auth.transport.requests
import requests
from google.oauth2 import id_token

from .config import FIREBASE_API_KEY, resolve_project
from .errors import AuthenticationError, ProfileNotFoundError
from .events import EventStream
from .firestore_db import DocumentStore
from .models import UserProfile, utcnow

logger = logging.getLogger(__name__)

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

ERROR_MESSAGES = {
    "EMAIL_NOT_FOUND": "User not found",
    "INVALID_PASSWORD": "Incorrect password",
    "INVALID_EMAIL": "Invalid email address",
    "INVALID_LOGIN_CREDENTIALS": "Invalid email or password",
}

USER_MARKER = "user"
CUSTOMER_MARKER = "customerAuth"


@dataclass
class AuthUser:
    uid: str
    email: str
    id_token: str = ""


@dataclass
class LoginResult:
    user: UserProfile
    redirect: str
    id_token: str = ""


def error_message(code: str) -> str:
    # Identity Toolkit sometimes appends detail: "INVALID_PASSWORD : ..."
    return ERROR_MESSAGES.get(code.split(":")[0].strip(), "Login failed")


class FirebaseAuthClient:
    """Email/password sign-in with an auth-state stream."""

    def __init__(self, api_key: str = FIREBASE_API_KEY, http: requests.Session | None = None):
        self._api_key = api_key
        self._http = http or requests.Session()
        self.current_user: AuthUser | None = None
        self.auth_state = EventStream("auth-state")

    def sign_in_with_password(self, email: str, password: str) -> AuthUser:
        resp = self._http.post(
            SIGN_IN_URL,
            params={"key": self._api_key},
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        if resp.status_code != 200:
            try:
                code = resp.json().get("error", {}).get("message", "")
            except ValueError:
                code = ""
            logger.warning("Sign-in failed for %s: %s", email, code or resp.status_code)
            raise AuthenticationError(error_message(code), code=code)
        body = resp.json()
        self.current_user = AuthUser(uid=body["localId"], email=body.get("email", email),
                                     id_token=body.get("idToken", ""))
        self.auth_state.publish(self.current_user)
        return self.current_user

    def sign_out(self) -> None:
        self.current_user = None
        self.auth_state.publish(None)

    def verify_id_token(self, token: str) -> dict:
        """Return the decoded claims of a Firebase ID token, or raise AuthenticationError."""
        try:
            return id_token.verify_firebase_token(
                token, google.auth.transport.requests.Request(), audience=resolve_project(),
            )
        except ValueError as exc:
            raise AuthenticationError("Invalid or expired token", code="INVALID_ID_TOKEN") from exc


def profile_from_user_doc(uid: str, email: str, data: dict) -> UserProfile:
    role = data.get("role") if data.get("role") in ("admin", "super_admin", "customer") else "admin"
    return UserProfile(id=uid, email=email or data.get("email", ""), role=role,
                       branch_id=data.get("branchId"), branch_name=data.get("branchName"),
                       name=data.get("name"))


def profile_from_customer_doc(uid: str, email: str, data: dict) -> UserProfile:
    return UserProfile(id=uid, email=email or data.get("email", ""), role="customer",
                       name=data.get("name"), phone=data.get("phone"))


def lookup_profile(db: DocumentStore, uid: str, email: str = "") -> UserProfile | None:
    """Admin profile from `users`, falling back to `customers`."""
    doc = db.get_document("users", uid)
    if doc is not None:
        return profile_from_user_doc(uid, email, doc.data)
    doc = db.get_document("customers", uid)
    if doc is not None:
        return profile_from_customer_doc(uid, email, doc.data)
    return None


def redirect_for(role: str) -> str:
    if role == "super_admin":
        return "/super-admin"
    if role == "customer":
        return "/customer/portal"
    return "/admin"


def logout_redirect(role: str | None) -> str:
    return "/customer/login" if role == "customer" else "/login"


class AuthSession:
    """Signed-in user plus the session markers the dashboard keeps."""

    def __init__(self, auth_client: FirebaseAuthClient, db: DocumentStore):
        self._auth = auth_client
        self._db = db
        self.user: UserProfile | None = None
        self.markers: dict[str, dict] = {}
        self._subscription = auth_client.auth_state.subscribe(self._on_auth_state_changed)

    def close(self) -> None:
        self._subscription.cancel()

    def _clear(self) -> None:
        self.user = None
        self.markers.pop(USER_MARKER, None)
        self.markers.pop(CUSTOMER_MARKER, None)

    def _remember(self, profile: UserProfile) -> None:
        self.user = profile
        self.markers[USER_MARKER] = profile.model_dump()

    def _force_sign_out(self) -> None:
        try:
            self._auth.sign_out()
        finally:
            self._clear()

    def _on_auth_state_changed(self, auth_user: AuthUser | None) -> None:
        if auth_user is None:
            self.user = None
            self.markers.pop(USER_MARKER, None)
            logger.info("User signed out")
            return
        try:
            profile = lookup_profile(self._db, auth_user.uid, auth_user.email)
            if profile is None:
                profile = self._create_pending_customer(auth_user)
        except Exception:
            logger.exception("Error fetching user data for %s", auth_user.uid)
            self._force_sign_out()
            return
        if profile is None:
            logger.error("User document not found for %s", auth_user.uid)
            self._force_sign_out()
            return
        self._remember(profile)
        logger.info("Auth state updated: %s (%s)", profile.email, profile.role)

    def _create_pending_customer(self, auth_user: AuthUser) -> UserProfile | None:
        pending = self.markers.get(CUSTOMER_MARKER, {}).get("customer")
        if not pending or pending.get("id") != auth_user.uid:
            return None
        self._db.set("customers", auth_user.uid, {
            "email": auth_user.email,
            "name": pending.get("name") or "",
            "phone": pending.get("phone") or "",
            "role": "customer",
            "createdAt": utcnow(),
            "status": "active",
        })
        logger.info("New customer document created for %s", auth_user.uid)
        return UserProfile(id=auth_user.uid, email=auth_user.email, role="customer",
                           name=pending.get("name"), phone=pending.get("phone"))

    def login(self, email: str, password: str, is_customer: bool = False) -> LoginResult:
        auth_user = self._auth.sign_in_with_password(email, password)
        collection = "customers" if is_customer else "users"
        try:
            doc = self._db.get_document(collection, auth_user.uid)
        except Exception as exc:
            logger.exception("Profile lookup failed for %s", auth_user.uid)
            self._force_sign_out()
            raise AuthenticationError("Login failed", code="PROFILE_LOOKUP_FAILED") from exc
        if doc is None:
            self._force_sign_out()
            raise ProfileNotFoundError(auth_user.uid, collection)

        if is_customer:
            profile = profile_from_customer_doc(auth_user.uid, auth_user.email, doc.data)
            self._remember(profile)
            self.markers[CUSTOMER_MARKER] = {"isAuthenticated": True, "customer": profile.model_dump()}
        else:
            profile = profile_from_user_doc(auth_user.uid, auth_user.email, doc.data)
            self._remember(profile)
        logger.info("Login successful for %s as %s", profile.email, profile.role)
        return LoginResult(user=profile, redirect=redirect_for(profile.role), id_token=auth_user.id_token)

    def logout(self) -> str:
        role = self.user.role if self.user is not None else None
        self._auth.sign_out()
        self.user = None
        self.markers.pop(USER_MARKER, None)
        if role == "customer":
            self.markers.pop(CUSTOMER_MARKER, None)
        return logout_redirect(role)
