"""
Session-based authentication collaborator.

The rest of the application talks to it through two seams only:
``Auth.get_session(headers)`` for the session middleware, and ``Auth.app``,
an ASGI application mounted under the auth prefix that owns the whole
request/response cycle for sign-up, sign-in, sign-out and session lookup.
"""
from __future__ import annotations

import hashlib
import json
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

import bcrypt
from itsdangerous import BadSignature, Signer
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request, cookie_parser
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from .errors import server_error_response
from .models import SessionEntity, UserEntity
from .repositories import AuthRepository, utcnow
from .schemas import SessionOut, SignInBody, SignUpBody, UserOut
from .settings import Settings

logger = logging.getLogger(__name__)

SESSION_COOKIE = "tasks_api.session_token"
SESSION_TTL = timedelta(days=7)
BCRYPT_ROUNDS = 10


@dataclass(frozen=True)
class SessionData:
    user: UserEntity
    session: SessionEntity


# PUBLIC_INTERFACE
def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


# PUBLIC_INTERFACE
def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _error(status_code: int, code: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"code": code, "message": message, **extra}, status_code=status_code)


def _session_payload(data: SessionData) -> Dict[str, Any]:
    return {
        "session": SessionOut(**data.session).model_dump(mode="json", by_alias=True),
        "user": UserOut(**data.user).model_dump(mode="json", by_alias=True),
    }


# PUBLIC_INTERFACE
class Auth:
    """
    Email/password authentication with server-side sessions.

    Session tokens travel either in a signed HttpOnly cookie or as
    ``Authorization: Bearer <token>``.
    """

    def __init__(self, store: AuthRepository, settings: Settings) -> None:
        self._store = store
        self._signer = Signer(settings.auth_secret, salt=SESSION_COOKIE, digest_method=hashlib.sha256)
        self._include_error_details = not settings.is_production
        self._secure_cookies = settings.auth_url.startswith("https://")
        self.app = Starlette(
            routes=[
                Route("/sign-up/email", self._sign_up, methods=["POST"]),
                Route("/sign-in/email", self._sign_in, methods=["POST"]),
                Route("/sign-out", self._sign_out, methods=["POST"]),
                Route("/get-session", self._get_session, methods=["GET"]),
                Route("/ok", self._ok, methods=["GET"]),
            ],
            exception_handlers={HTTPException: self._http_error, Exception: self._server_error},
        )

    # Token signing

    def sign_token(self, token: str) -> str:
        return self._signer.sign(token).decode("utf-8")

    def unsign_token(self, value: str) -> Optional[str]:
        """Return the token inside a signed cookie value, or None if the signature does not verify."""
        try:
            return self._signer.unsign(value).decode("utf-8")
        except (BadSignature, UnicodeError):
            return None

    def _token_from_headers(self, headers: Mapping[str, str]) -> Optional[str]:
        authorization = headers.get("authorization") or ""
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()

        cookie = cookie_parser(headers.get("cookie") or "").get(SESSION_COOKIE)
        if cookie:
            return self.unsign_token(cookie)
        return None

    # Session lookup

    async def get_session(self, headers: Mapping[str, str]) -> Optional[SessionData]:
        """Resolve the session carried by the request headers, or None."""
        token = self._token_from_headers(headers)
        if not token:
            return None

        session = await self._store.get_session(token)
        if session is None:
            return None
        if session["expires_at"] <= utcnow():
            await self._store.delete_session(token)
            return None

        user = await self._store.get_user(session["user_id"])
        if user is None:
            return None
        return SessionData(user=user, session=session)

    async def _start_session(self, user: UserEntity, request: Request) -> SessionEntity:
        now = utcnow()
        session: SessionEntity = {
            "id": str(uuid.uuid4()),
            "token": secrets.token_urlsafe(32),
            "user_id": user["id"],
            "expires_at": now + SESSION_TTL,
            "created_at": now,
            "ip_address": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent"),
        }
        return await self._store.create_session(session)

    def _with_cookie(self, response: Response, token: str) -> Response:
        response.set_cookie(
            SESSION_COOKIE,
            self.sign_token(token),
            max_age=int(SESSION_TTL.total_seconds()),
            path="/",
            httponly=True,
            samesite="lax",
            secure=self._secure_cookies,
        )
        return response

    # Endpoints

    async def _read_json(self, request: Request) -> Any:
        try:
            return await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None

    async def _sign_up(self, request: Request) -> Response:
        try:
            body = SignUpBody.model_validate(await self._read_json(request))
        except ValidationError as e:
            return _error(
                422, "VALIDATION_ERROR", "Invalid request body",
                details=e.errors(include_url=False, include_context=False, include_input=False),
            )

        now = utcnow()
        user: UserEntity = {
            "id": str(uuid.uuid4()),
            "email": body.email,
            "name": body.name,
            "password_hash": await run_in_threadpool(hash_password, body.password),
            "created_at": now,
            "updated_at": now,
        }
        try:
            user = await self._store.create_user(user)
        except ValueError:
            return _error(409, "USER_ALREADY_EXISTS", "User already exists")

        session = await self._start_session(user, request)
        logger.info("User signed up", extra={"path": request.url.path})
        response = JSONResponse(
            {"token": session["token"], "user": UserOut(**user).model_dump(mode="json", by_alias=True)}
        )
        return self._with_cookie(response, session["token"])

    async def _sign_in(self, request: Request) -> Response:
        try:
            body = SignInBody.model_validate(await self._read_json(request))
        except ValidationError as e:
            return _error(
                422, "VALIDATION_ERROR", "Invalid request body",
                details=e.errors(include_url=False, include_context=False, include_input=False),
            )

        user = await self._store.get_user_by_email(body.email)
        if user is None or not await run_in_threadpool(verify_password, body.password, user["password_hash"]):
            return _error(401, "INVALID_EMAIL_OR_PASSWORD", "Invalid email or password")

        session = await self._start_session(user, request)
        response = JSONResponse(
            {"token": session["token"], "user": UserOut(**user).model_dump(mode="json", by_alias=True)}
        )
        return self._with_cookie(response, session["token"])

    async def _sign_out(self, request: Request) -> Response:
        token = self._token_from_headers(request.headers)
        if token:
            await self._store.delete_session(token)
        response = JSONResponse({"success": True})
        response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax")
        return response

    async def _get_session(self, request: Request) -> Response:
        data = await self.get_session(request.headers)
        return JSONResponse(None if data is None else _session_payload(data))

    async def _ok(self, request: Request) -> Response:
        return JSONResponse({"ok": True})

    async def _http_error(self, request: Request, exc: Exception) -> Response:
        assert isinstance(exc, HTTPException)
        message = "Not Found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse({"message": message}, status_code=exc.status_code, headers=exc.headers)

    async def _server_error(self, request: Request, exc: Exception) -> Response:
        return server_error_response(request, exc, include_details=self._include_error_details)
