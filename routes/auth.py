# routes/auth.py
from __future__ import annotations

import logging
import re
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from config import settings
from dependencies import get_auth_service
from models import EmailRequest, LoginRequest, ResetPasswordRequest, SignupRequest, user_payload
from request_context import get_request_id
from services.auth_service import AuthServiceError, SupabaseAuthService

log = logging.getLogger("auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 8
# The profiles row is created by a database trigger right after signup
PROFILE_TRIGGER_WAIT_S = 0.5

RESET_SENT_MESSAGE = "If an account exists with this email, a password reset link has been sent."

def _bearer(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None

def _check_email(email: str) -> None:
    if not EMAIL_RE.match(email.strip()):
        raise HTTPException(status_code=400, detail="Please enter a valid email address")

def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

def _signup_error_message(message: str) -> str:
    if "already registered" in message:
        return "This email is already registered. Please sign in instead."
    if "invalid" in message:
        return "Please enter a valid email address."
    if "confirmation email" in message or "Error sending" in message:
        return (
            "Failed to send confirmation email. Please check SMTP settings in Supabase Dashboard → "
            "Settings → Auth → SMTP Settings, or disable email confirmations temporarily for development."
        )
    return message

def _profile_or_none(auth: SupabaseAuthService, user_id: str) -> Optional[Dict[str, Any]]:
    try:
        return auth.get_profile(user_id)
    except AuthServiceError as e:
        log.warning("Profile lookup failed: %s", e.message, extra={"request_id": get_request_id(), "user_id": user_id})
        return None

@router.post("/signup")
def signup(req: SignupRequest, auth: SupabaseAuthService = Depends(get_auth_service)):
    rid = get_request_id()
    if not req.email or not req.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    if not req.first_name or not req.last_name:
        raise HTTPException(status_code=400, detail="First name and last name are required")
    if not req.date_of_birth:
        raise HTTPException(status_code=400, detail="Date of birth is required")
    _check_email(req.email)
    _check_password(req.password)

    display_name = req.name or f"{req.first_name} {req.last_name}".strip()
    metadata = {
        "name": display_name,
        "firstName": req.first_name,
        "lastName": req.last_name,
        "dateOfBirth": req.date_of_birth,
    }
    try:
        user, session = auth.sign_up(req.email.lower().strip(), req.password, metadata)
    except AuthServiceError as e:
        log.warning("Supabase signup error: %s", e.message, extra={"request_id": rid})
        raise HTTPException(status_code=400, detail=_signup_error_message(e.message)) from e

    if not user or not user.get("id"):
        log.error("No user returned from Supabase", extra={"request_id": rid})
        raise HTTPException(status_code=400, detail="Failed to create user")
    log.info("User created", extra={"request_id": rid, "user_id": user["id"]})

    time.sleep(PROFILE_TRIGGER_WAIT_S)
    profile = _profile_or_none(auth, user["id"])
    try:
        if profile is None:
            auth.insert_profile({"id": user["id"], "email": user.get("email"), **metadata})
        else:
            auth.update_profile(user["id"], {
                "firstName": req.first_name or profile.get("firstName"),
                "lastName": req.last_name or profile.get("lastName"),
                "dateOfBirth": req.date_of_birth or profile.get("dateOfBirth"),
            })
    except AuthServiceError as e:
        log.error("Error saving profile: %s", e.message, extra={"request_id": rid, "user_id": user["id"]})

    final_profile = _profile_or_none(auth, user["id"]) or {}
    merged = dict(metadata)
    merged.update({k: v for k, v in final_profile.items() if v})

    needs_confirmation = session is None
    return {
        "success": True,
        "user": user_payload(user, merged, emailVerified=not needs_confirmation),
        "session": session,
        "needsEmailConfirmation": needs_confirmation,
        "message": (
            "Account created! Please check your email to confirm your account."
            if needs_confirmation else "Account created successfully!"
        ),
    }

@router.post("/login")
def login(req: LoginRequest, auth: SupabaseAuthService = Depends(get_auth_service)):
    if not req.email or not req.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    try:
        session = auth.sign_in(req.email, req.password)
    except AuthServiceError as e:
        if e.status_code >= 500:
            raise HTTPException(status_code=500, detail=e.message) from e
        raise HTTPException(status_code=401, detail=e.message or "Invalid credentials") from e

    user = session.get("user") or {}
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.get("email_confirmed_at"):
        return JSONResponse(status_code=403, content={
            "success": False,
            "error": "Please verify your email address before logging in. Check your inbox for the verification email.",
            "needsEmailVerification": True,
        })

    profile = _profile_or_none(auth, user["id"])
    return {"success": True, "user": user_payload(user, profile, emailVerified=True), "session": session}

@router.post("/logout")
def logout(authorization: Optional[str] = Header(default=None), auth: SupabaseAuthService = Depends(get_auth_service)):
    token = _bearer(authorization)
    if token:
        try:
            auth.sign_out(token)
        except AuthServiceError as e:
            # An already revoked or expired token still counts as logged out
            log.info("Sign out returned %s: %s", e.status_code, e.message, extra={"request_id": get_request_id()})
    return {"success": True, "message": "Logged out successfully"}

@router.get("/verify-status")
def verify_status(authorization: Optional[str] = Header(default=None), auth: SupabaseAuthService = Depends(get_auth_service)):
    token = _bearer(authorization)
    if not token:
        return JSONResponse(status_code=401, content={"verified": False, "error": "Authorization token required"})
    try:
        user = auth.get_user(token)
    except AuthServiceError:
        return JSONResponse(status_code=401, content={"verified": False, "error": "Invalid token"})
    return {"verified": bool(user.get("email_confirmed_at"))}

@router.post("/resend-verification")
def resend_verification(
    req: Optional[EmailRequest] = None,
    authorization: Optional[str] = Header(default=None),
    auth: SupabaseAuthService = Depends(get_auth_service),
):
    rid = get_request_id()
    email = req.email if req else None
    user: Optional[Dict[str, Any]] = None

    token = _bearer(authorization)
    if token:
        try:
            user = auth.get_user(token)
        except AuthServiceError:
            user = None

    if user is None and email:
        try:
            user = auth.find_user_by_email(email)
        except AuthServiceError as e:
            log.warning("User lookup by email failed: %s", e.message, extra={"request_id": rid})

    if user is None:
        raise HTTPException(
            status_code=404,
            detail="No account found with this email address" if email else "Authorization token or email required",
        )

    if user.get("email_confirmed_at"):
        return {"success": True, "message": "Email is already verified"}

    try:
        auth.resend_signup(user.get("email") or "")
    except AuthServiceError as e:
        raise HTTPException(status_code=400, detail=e.message or "Failed to resend verification email") from e

    log.info("Verification email resent", extra={"request_id": rid, "user_id": user.get("id")})
    return {"success": True, "message": "Verification email sent successfully"}

@router.post("/forgot-password")
def forgot_password(req: EmailRequest, auth: SupabaseAuthService = Depends(get_auth_service)):
    if not req.email:
        raise HTTPException(status_code=400, detail="Email is required")
    _check_email(req.email)

    try:
        auth.recover(req.email.lower().strip(), settings.FRONTEND_URL)
    except AuthServiceError as e:
        # Same answer either way so the endpoint doesn't reveal which emails have accounts
        log.warning("Password reset error: %s", e.message, extra={"request_id": get_request_id()})
    return {"success": True, "message": RESET_SENT_MESSAGE}

@router.post("/reset-password")
def reset_password(req: ResetPasswordRequest, auth: SupabaseAuthService = Depends(get_auth_service)):
    if not req.token or not req.password:
        raise HTTPException(status_code=400, detail="Token and password are required")
    _check_password(req.password)

    try:
        user = auth.get_user(req.token)
    except AuthServiceError as e:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired reset token. Please request a new password reset.",
        ) from e

    try:
        auth.update_user_password(user["id"], req.password)
    except AuthServiceError as e:
        log.error("Password update error: %s", e.message, extra={"request_id": get_request_id(), "user_id": user["id"]})
        raise HTTPException(status_code=400, detail=e.message or "Failed to reset password") from e

    return {"success": True, "message": "Password has been reset successfully"}

@router.get("/me")
def me(authorization: Optional[str] = Header(default=None), auth: SupabaseAuthService = Depends(get_auth_service)):
    token = _bearer(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="No token provided")
    try:
        user = auth.get_user(token)
    except AuthServiceError as e:
        raise HTTPException(status_code=401, detail="Invalid token") from e

    profile = _profile_or_none(auth, user["id"])
    full = user_payload(user, profile)
    return {"success": True, "user": {"id": full["id"], "email": full["email"], "name": full["name"]}}
