"""
api/routes/accounts.py -- Account lifecycle endpoints, mirrored per user kind.

One router serves both kinds. It is mounted under /api and every path starts
with the kind segment, so /api/student/... and /api/investors/... hit the same
handlers with a different UserKind:

  POST     /{kind}/register                          -- create unverified account, email link
  POST     /{kind}/login                             -- session cookie + body tokens
  POST     /{kind}/forgotPassword                    -- email reset link
  POST     /{kind}/resetPassword/{user_id}/{token}   -- set new password
  POST     /{kind}/resendEmailVerification           -- re-send verification link
  GET|POST /{kind}/verify-email/{user_id}/{token}    -- mark email verified
  GET      /{kind}/getSelf/{user_id}                 -- own profile (session)
  GET      /{kind}/getSingle/{user_id}               -- any profile (admin)
  GET      /{kind}/getAll?page&limit                 -- paginated listing (admin)
  GET      /{kind}/search?query=                     -- public directory search
  GET      /{kind}/logout                            -- clear session cookie
  POST     /{kind}/update/{user_id}                  -- own profile patch (session)

Handlers are plain `def`: the store and SMTP calls block, so FastAPI runs
them in its threadpool.

Failures are raised by AccountService as core.errors.AppError subclasses and
rendered into the failure envelope by api/main.py.

Security:
  register, login, forgotPassword and resendEmailVerification are rate-limited.
  Login responses carry Cache-Control: no-store.
  Profile reads and writes on /getSelf and /update require the session's own
  id; /getSingle and /getAll require the admin role.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from accounts.service import AccountService
from api.limiter import email_limit, limiter, login_limit, register_limit
from api.models import (
    EmailRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from auth.dependencies import Session, get_session, require_admin
from auth.models import UserKind
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import get_settings

router = APIRouter()

_KIND_BY_PATH = {kind.path: kind for kind in UserKind}


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_kind(kind: str) -> UserKind:
    """Resolve the leading path segment ("student" / "investors") to a UserKind."""
    try:
        return _KIND_BY_PATH[kind]
    except KeyError:
        raise HTTPException(status_code=404, detail="Not Found") from None


def get_service(request: Request, user_kind: UserKind = Depends(get_kind)) -> AccountService:
    state = request.app.state
    return AccountService(user_kind, state.user_store, state.mailer, get_settings())


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ok(message: str, status_code: int = 200, **payload) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "status": status_code, "message": message, **payload},
    )


def _label(kind: UserKind) -> str:
    return kind.value.capitalize()


def _collection(kind: UserKind) -> str:
    return f"{kind.value}s"


# ---------------------------------------------------------------------------
# Registration and verification (public)
# ---------------------------------------------------------------------------


@router.post("/{kind}/register", status_code=201)
@limiter.limit(register_limit)
def register(
    request: Request,
    body: RegisterRequest,
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    """Create an unverified account and email the verification link. No auto-login."""
    service.register(body.model_dump())
    return _ok(
        f"{_label(service.kind)} registration is successful. "
        "Please verify your email with the link sent to you",
        status_code=201,
    )


@router.api_route("/{kind}/verify-email/{user_id}/{token}", methods=["GET", "POST"])
def verify_email(user_id: str, token: str, service: AccountService = Depends(get_service)) -> JSONResponse:
    user = service.verify_email(user_id, token)
    return _ok("Email verification successful", user=UserResponse.from_user(user).wire())


@router.post("/{kind}/resendEmailVerification")
@limiter.limit(email_limit)
def resend_email_verification(
    request: Request,
    body: EmailRequest,
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    service.resend_verification(body.email)
    return _ok("Verification link sent successfully. Please verify your email with the link sent to you")


# ---------------------------------------------------------------------------
# Session (public)
# ---------------------------------------------------------------------------


@router.post("/{kind}/login")
@limiter.limit(login_limit)
def login(
    request: Request,
    body: LoginRequest,
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    """Authenticate; set the session cookie and return both tokens in the body.

    Unknown email and wrong password return the same error. An unverified
    account gets a fresh verification email and a 403 with no session.
    """
    result = service.login(body.email, body.password)
    resp = _ok(
        f"{result.user.role.value} logged in successfully",
        user=UserResponse.from_user(result.user).wire(),
        token=result.token,
        clientToken=result.client_token,
    )
    set_session_cookie(resp, result.token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/{kind}/logout")
def logout(user_kind: UserKind = Depends(get_kind)) -> JSONResponse:
    """Clear the session cookie. Needs no prior auth."""
    resp = _ok(f"{_label(user_kind)} logged out successfully")
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Password recovery (public)
# ---------------------------------------------------------------------------


@router.post("/{kind}/forgotPassword")
@limiter.limit(email_limit)
def forgot_password(
    request: Request,
    body: EmailRequest,
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    service.forgot_password(body.email)
    return _ok("Password reset link has been sent")


@router.post("/{kind}/resetPassword/{user_id}/{token}")
def reset_password(
    user_id: str,
    token: str,
    body: ResetPasswordRequest,
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    service.reset_password(user_id, token, body.password, body.confirm_password)
    return _ok("Password reset successfully. You can login")


# ---------------------------------------------------------------------------
# Profile (session)
# ---------------------------------------------------------------------------


@router.get("/{kind}/getSelf/{user_id}")
def get_self(
    user_id: str,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    user = service.get_self(session.user_id, user_id)
    return _ok(f"{_label(service.kind)} fetched successfully", user=UserResponse.from_user(user).wire())


@router.post("/{kind}/update/{user_id}")
def update_profile(
    user_id: str,
    body: ProfileUpdateRequest,
    session: Session = Depends(get_session),
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    user = service.update_profile(session.user_id, user_id, body.model_dump(exclude_none=True))
    return _ok(f"{_label(service.kind)} updated successfully", user=UserResponse.from_user(user).wire())


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------


@router.get("/{kind}/getSingle/{user_id}")
def get_single(
    user_id: str,
    session: Session = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    """Fetch any user of this kind. Admin only."""
    user = service.get_single(user_id)
    return _ok(f"{_label(service.kind)} fetched successfully", user=UserResponse.from_user(user).wire())


@router.get("/{kind}/getAll")
def get_all(
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    session: Session = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    """List users of this kind. Without ?page the whole set comes back as one page. Admin only."""
    result = service.list_users(page=page, limit=limit)
    return _ok(
        f"{_label(service.kind)}s found successfully",
        count=result.count,
        pages=result.pages,
        **{_collection(service.kind): [UserResponse.from_user(u).wire() for u in result.items]},
    )


@router.get("/{kind}/search")
def search(
    query: Optional[str] = Query(default=None, max_length=100),
    service: AccountService = Depends(get_service),
) -> JSONResponse:
    """Case-insensitive search over name, email, address and residence. Public."""
    users = service.search(query)
    if not users:
        return JSONResponse(
            status_code=404,
            content={"success": False, "status": 404, "code": "not_found", "error": "No matching user found"},
        )
    return _ok(
        f"{_label(service.kind)}s found successfully",
        count=len(users),
        **{_collection(service.kind): [UserResponse.from_user(u).wire() for u in users]},
    )
