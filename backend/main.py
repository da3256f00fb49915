import json
import logging
import math
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    HTTPException,
    Request,
    Response,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import psycopg2
import psycopg2.extras
from pydantic import BaseModel
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request
from dotenv import load_dotenv
from jose import JWTError, jwt

_project_root = Path(__file__).resolve().parents[1]
if str(_project_root) not in sys.path:
    sys.path.append(str(_project_root))

try:
    from backend.app.errors import ServiceError
    from backend.app.settings import to_lowercase_set
except ModuleNotFoundError as exc:
    if exc.name != "backend":
        raise
    from app.errors import ServiceError  # type: ignore[no-redef]
    from app.settings import to_lowercase_set  # type: ignore[no-redef]


load_dotenv()

def _parse_connect_timeout(raw_value: str) -> int:
    try:
        timeout = float(raw_value)
    except ValueError as exc:
        raise ValueError("DB_CONNECT_TIMEOUT must be a number") from exc
    if timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return int(math.ceil(timeout))

DB_CFG = dict(
    host=os.getenv("DB_HOST", "127.0.0.1"),
    port=int(os.getenv("DB_PORT", "5432")),
    dbname=os.getenv("DB_NAME", "tge_dashboard"),
    user=os.getenv("DB_USER", "tge_user"),
    password=os.getenv("DB_PASSWORD", "tge_pass"),
    connect_timeout=_parse_connect_timeout(os.getenv("DB_CONNECT_TIMEOUT", "5")),
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
JWT_EXP_MINUTES = int(os.getenv("JWT_EXP_MINUTES", str(60 * 24 * 7)))  # default: 7 days
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "0").lower() in {"1", "true", "yes"}

GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
GOOGLE_TOKENINFO_URL = os.getenv("GOOGLE_TOKENINFO_URL", "https://oauth2.googleapis.com/tokeninfo")
GOOGLE_TOKENINFO_TIMEOUT_SECONDS = float(os.getenv("GOOGLE_TOKENINFO_TIMEOUT_SECONDS", "5"))
CORS_ALLOW_ORIGINS = sorted(to_lowercase_set(os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:3000")))

logger = logging.getLogger("tge_dashboard")
auth_logger = logging.getLogger("auth")


def get_conn():
    return psycopg2.connect(**DB_CFG)


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None


class GoogleSignInRequest(BaseModel):
    credential: str


def create_access_token(
    *,
    subject: str,
    expires_delta: Optional[timedelta] = None,
    claims: Optional[Dict[str, Any]] = None,
) -> str:
    payload: Dict[str, Any] = dict(claims or {})
    payload["sub"] = subject
    if expires_delta is None:
        expires_delta = timedelta(minutes=JWT_EXP_MINUTES)
    payload["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def get_user_by_id(uid: str) -> Optional[UserOut]:
    with get_conn() as conn, conn.cursor(cursor_factory=psycopg2.extras.DictCursor) as cur:
        cur.execute("SELECT id, email, name, image FROM users WHERE id = %s", (uid,))
        row = cur.fetchone()
    if not row:
        return None
    return UserOut(**dict(row))


def upsert_user(user: UserOut, *, provider: str = "google") -> None:
    """Save the signed-in user; a failure is logged and never blocks sign-in."""

    now = datetime.now(timezone.utc)
    email = user.email.strip().lower() if user.email else None
    try:
        with get_conn() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO users (id, email, name, image, provider, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET email = EXCLUDED.email,
                    name = EXCLUDED.name,
                    image = EXCLUDED.image,
                    updated_at = EXCLUDED.updated_at
                """,
                (user.id, email, user.name, user.image, provider, now, now),
            )
    except psycopg2.Error:
        auth_logger.exception("Failed to save user on sign-in", extra={"auth_user_id": user.id})


def verify_google_id_token(credential: str) -> Dict[str, Any]:
    query = urllib_parse.urlencode({"id_token": credential})
    request = urllib_request.Request(f"{GOOGLE_TOKENINFO_URL}?{query}", headers={"Accept": "application/json"})
    try:
        with urllib_request.urlopen(request, timeout=GOOGLE_TOKENINFO_TIMEOUT_SECONDS) as response:
            claims = json.loads(response.read().decode("utf-8"))
    except urllib_error.HTTPError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Google credential") from exc
    except (urllib_error.URLError, TimeoutError, OSError) as exc:
        auth_logger.warning("Google token verification unavailable", extra={"error": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        ) from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Google credential") from exc

    if not isinstance(claims, dict) or not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Google credential")
    if GOOGLE_CLIENT_ID and claims.get("aud") != GOOGLE_CLIENT_ID:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid Google credential")
    return claims


def resolve_user_from_session_token(session_token: str) -> Optional[UserOut]:
    try:
        payload = jwt.decode(session_token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
        subject = payload.get("sub")
        if not subject:
            return None
        user_id = str(subject)
    except (JWTError, ValueError):
        return None

    try:
        user = get_user_by_id(user_id)
    except psycopg2.Error:
        auth_logger.exception("User lookup failed; using session claims", extra={"auth_user_id": user_id})
        user = None
    if user is not None:
        return user
    # Sign-in never blocks on a failed user save, so the session claims stand in for the row.
    if not payload.get("email"):
        return None
    return UserOut(
        id=user_id,
        email=payload.get("email"),
        name=payload.get("name"),
        image=payload.get("picture"),
    )


def get_current_user(session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)) -> UserOut:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = resolve_user_from_session_token(session_token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def get_optional_current_user(
    session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME),
) -> Optional[UserOut]:
    if not session_token:
        return None

    try:
        user = resolve_user_from_session_token(session_token)
    except Exception:
        auth_logger.exception("Unexpected error while resolving optional session token")
        return None
    return user


try:
    from backend import app_context
except ModuleNotFoundError as exc:
    if exc.name != "backend":
        raise
    import app_context  # type: ignore[no-redef]

app_context.configure(
    get_conn=get_conn,
    get_current_user=get_current_user,
    get_optional_current_user=get_optional_current_user,
)

from backend.app.routes.billing import router as payment_router
from backend.app.routes.campaigns import router as campaigns_router
from backend.app.routes.invites import router as invites_router
from backend.app.routes.subscription import router as subscription_router

app = FastAPI(title="TGE Dashboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(invites_router)
app.include_router(subscription_router)
app.include_router(payment_router)
app.include_router(campaigns_router)


@app.exception_handler(ServiceError)
async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed: %s",
            exc.message,
            extra={"path": request.url.path, "error_code": exc.code},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.payload)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


@app.post("/api/auth/google", response_model=UserOut)
def sign_in_with_google(payload: GoogleSignInRequest, response: Response):
    claims = verify_google_id_token(payload.credential)
    user = UserOut(
        id=str(claims["sub"]),
        email=(claims.get("email") or "").strip().lower() or None,
        name=claims.get("name"),
        image=claims.get("picture"),
    )
    upsert_user(user)

    token = create_access_token(
        subject=user.id,
        claims={"email": user.email, "name": user.name, "picture": user.image},
    )
    max_age = int(timedelta(minutes=JWT_EXP_MINUTES).total_seconds())
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=SESSION_COOKIE_SECURE,
        max_age=max_age,
        path="/",
    )
    auth_logger.info("User signed in", extra={"auth_user_id": user.id})
    return user


@app.post("/api/auth/logout")
def logout(response: Response):
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=SESSION_COOKIE_SECURE,
    )
    return {"ok": True}


@app.get("/api/auth/me", response_model=UserOut)
def read_current_user(current_user: UserOut = Depends(get_current_user)):
    return current_user

@app.get("/api/healthz")
def healthz():
    return {"ok": True}
