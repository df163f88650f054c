"""Login, registration and cookie-based JWT authentication."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any

import jwt
from flask import g, request
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from .cache import ExpiringCache
from .crud import _guarded, _read_object
from .errors import ApiError, ErrorCode, respond
from .models import User

AUTH_COOKIE = "Authorization"
ISSUER = "ssat_env_monitor"
COOKIE_MAX_AGE = 3600
ALGORITHMS = ["HS256", "HS384", "HS512"]

AUTH_CACHE = ExpiringCache()


def hash_password(password: str) -> str:
    """Return the hex MD5 digest stored for ``password``."""
    return hashlib.md5(password.encode("utf-8")).hexdigest()


def _credentials() -> tuple[str, str]:
    data = _read_object()
    username = data.get("username")
    secret = data.get("password")
    if not (isinstance(username, str) and username and isinstance(secret, str) and secret):
        raise ApiError(ErrorCode.MISSING_PARAM)
    return username, secret


class AuthHandler:
    """Views for logging in, registering and logging out."""

    def __init__(self, session_factory: Callable, jwt_secret: str, jwt_expires: int) -> None:
        self._session_factory = session_factory
        self._jwt_secret = jwt_secret
        self._jwt_expires = jwt_expires

    def issue_token(self, user: User) -> str:
        """Sign an HS256 token whose subject is the user's UUID."""
        now = datetime.now(timezone.utc)
        claims = {
            "iss": ISSUER,
            "sub": str(user.uuid),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._jwt_expires)).timestamp()),
        }
        return jwt.encode(claims, self._jwt_secret, algorithm="HS256")

    @_guarded
    def login(self) -> Any:
        if request.cookies.get(AUTH_COOKIE):
            raise ApiError(ErrorCode.ALREADY_LOGGED_IN)
        username, secret = _credentials()
        with self._session_factory() as session:
            statement = select(User).where(
                User.username == username, User.hashed_password == hash_password(secret)
            )
            user = session.scalars(statement).first()
            if user is None:
                raise ApiError(ErrorCode.INCORRECT_AUTH_INFO)
            body = user.to_json()
            try:
                token = self.issue_token(user)
            except Exception as exc:
                raise ApiError(ErrorCode.INTERNAL_SERVER) from exc
        response = respond(body, ErrorCode.OK)
        response.set_cookie(
            AUTH_COOKIE, token, max_age=COOKIE_MAX_AGE, path="/", httponly=True
        )
        return response

    @_guarded
    def register(self) -> Any:
        username, secret = _credentials()
        with self._session_factory() as session:
            existing = session.scalars(select(User).where(User.username == username)).first()
            if existing is not None:
                raise ApiError(ErrorCode.USER_EXISTS)
            user = User(username=username, hashed_password=hash_password(secret))
            session.add(user)
            try:
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise ApiError(ErrorCode.INTERNAL_SERVER) from exc
            return respond(user.to_json(), ErrorCode.OK)

    def logout(self) -> Any:
        response = respond(None, ErrorCode.OK)
        response.delete_cookie(AUTH_COOKIE, path="/", httponly=True)
        return response


class AuthMiddleware:
    """View decorators that require a logged-in user or an administrator."""

    def __init__(self, session_factory: Callable, jwt_secret: str) -> None:
        self._session_factory = session_factory
        self._jwt_secret = jwt_secret
        self.cache = AUTH_CACHE

    def authenticate(self, token: str) -> User:
        """Return the user a token belongs to, or raise ``ApiError``."""
        cached = self.cache.get(token)
        if cached is not None:
            return cached
        try:
            claims = jwt.decode(token, self._jwt_secret, algorithms=ALGORITHMS)
        except jwt.ExpiredSignatureError as exc:
            raise ApiError(ErrorCode.EXPIRED_JWT) from exc
        except jwt.InvalidTokenError as exc:
            raise ApiError(ErrorCode.INVALID_JWT) from exc
        subject = claims.get("sub", "")
        if not isinstance(subject, str):
            raise ApiError(ErrorCode.INVALID_JWT)
        with self._session_factory() as session:
            user = session.get(User, subject)
            if user is None:
                raise ApiError(ErrorCode.USER_NOT_FOUND)
            session.expunge(user)
        expires = claims.get("exp")
        if isinstance(expires, bool) or not isinstance(expires, (int, float)):
            raise ApiError(ErrorCode.INVALID_JWT)
        remaining = expires - time.time()
        if remaining > 0:
            self.cache.set(token, user, remaining)
        return user

    def auth_required(self, view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            token = request.cookies.get(AUTH_COOKIE)
            if token is None:
                return respond(None, ErrorCode.UNAUTHORIZED)
            try:
                user = self.authenticate(token)
            except ApiError as exc:
                response = respond(exc.data, exc.status)
                if exc.status is ErrorCode.EXPIRED_JWT:
                    response.delete_cookie(AUTH_COOKIE, path="/", httponly=True)
                return response
            g.current_user = user
            return view(*args, **kwargs)

        return wrapper

    def admin_only(self, view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            user = g.get("current_user")
            if user is None or not user.is_admin:
                return respond(None, ErrorCode.FORBIDDEN)
            return view(*args, **kwargs)

        return wrapper