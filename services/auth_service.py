# services/auth_service.py
"""
Thin client for Supabase Auth (GoTrue) and the `profiles` table (PostgREST).

Everything goes through the REST endpoints with the service-role key; the
user's own access token is only used where GoTrue needs to identify the user
(`/user`, `/logout`).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

log = logging.getLogger("auth")

class AuthServiceError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

def _error_message(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text or f"Supabase returned HTTP {r.status_code}"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"Supabase returned HTTP {r.status_code}"

class SupabaseAuthService:
    def __init__(self, url: str, service_key: str, timeout_s: float = 15.0, client: Optional[httpx.Client] = None) -> None:
        self.url = url.rstrip("/")
        self.service_key = service_key
        self._client = client or httpx.Client(timeout=timeout_s)

    def _headers(self, token: Optional[str] = None, **extra: str) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {token or self.service_key}",
        }
        headers.update(extra)
        return headers

    def _request(self, method: str, path: str, *, token: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> httpx.Response:
        try:
            r = self._client.request(method, f"{self.url}{path}", headers=self._headers(token, **(headers or {})), **kwargs)
        except httpx.HTTPError as e:
            log.error("Supabase request failed: %s %s: %s", method, path, e)
            raise AuthServiceError(502, "Could not reach the authentication service") from e
        if r.status_code >= 400:
            raise AuthServiceError(r.status_code, _error_message(r))
        return r

    # ---- auth ----

    def sign_up(self, email: str, password: str, metadata: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Returns (user, session); session is None while email confirmation is pending."""
        body = self._request("POST", "/auth/v1/signup", json={
            "email": email,
            "password": password,
            "data": metadata,
        }).json()
        if body.get("access_token"):
            return body.get("user") or {}, body
        return body, None

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Password grant; returns the session with `user` embedded."""
        return self._request(
            "POST", "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        ).json()

    def sign_out(self, token: str) -> None:
        self._request("POST", "/auth/v1/logout", token=token)

    def get_user(self, token: str) -> Dict[str, Any]:
        try:
            user = self._request("GET", "/auth/v1/user", token=token).json()
        except AuthServiceError as e:
            if e.status_code < 500:
                raise AuthServiceError(401, "Invalid token") from e
            raise
        if not user or not user.get("id"):
            raise AuthServiceError(401, "Invalid token")
        return user

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        body = self._request("GET", "/auth/v1/admin/users").json()
        users: List[Dict[str, Any]] = body.get("users", []) if isinstance(body, dict) else body
        wanted = email.lower().strip()
        for user in users or []:
            if (user.get("email") or "").lower() == wanted:
                return user
        return None

    def resend_signup(self, email: str) -> None:
        self._request("POST", "/auth/v1/resend", json={"type": "signup", "email": email})

    def recover(self, email: str, redirect_to: str) -> None:
        self._request("POST", "/auth/v1/recover", params={"redirect_to": redirect_to}, json={"email": email})

    def update_user_password(self, user_id: str, password: str) -> None:
        self._request("PUT", f"/auth/v1/admin/users/{user_id}", json={"password": password})

    # ---- profiles ----

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        rows = self._request("GET", "/rest/v1/profiles", params={"id": f"eq.{user_id}", "select": "*"}).json()
        return rows[0] if rows else None

    def insert_profile(self, row: Dict[str, Any]) -> None:
        self._request("POST", "/rest/v1/profiles", json=row, headers={"Prefer": "return=minimal"})

    def update_profile(self, user_id: str, fields: Dict[str, Any]) -> None:
        self._request(
            "PATCH", "/rest/v1/profiles",
            params={"id": f"eq.{user_id}"},
            json=fields,
            headers={"Prefer": "return=minimal"},
        )
