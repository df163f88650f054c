"""API status codes and the JSON envelope every response is wrapped in."""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from flask import Response


class ErrorCode(Enum):
    """Application status: numeric code, HTTP status and message."""

    OK = (0, 200, "请求成功")
    CREATED = (0, 201, "创建成功")
    NOT_FOUND = (1, 404, "未找到")
    UNAUTHORIZED = (2, 401, "未登录")
    INTERNAL_SERVER = (3, 500, "服务器内部错误")
    BAD_REQUEST = (4, 400, "请求错误")
    MISSING_PARAM = (5, 400, "缺少参数")
    INCORRECT_AUTH_INFO = (6, 400, "用户名或密码错误")
    USER_EXISTS = (7, 400, "用户已存在")
    USER_NOT_FOUND = (8, 404, "用户未找到")
    INVALID_JWT = (9, 404, "认证信息无效")
    EXPIRED_JWT = (10, 401, "认证信息已过期，请重新登录")
    ALREADY_LOGGED_IN = (11, 400, "已登录")
    UNKNOWN_DEVICE = (12, 404, "未知的设备ID")
    INVALID_SIGNATURE = (13, 400, "无效的签名")
    EXPIRED_REQUEST = (14, 400, "时间戳过旧")
    REPLAY_ATTACK = (15, 400, "检测到重放攻击")
    FORBIDDEN = (1001, 403, "权限不足")

    def __init__(self, code: int, http_code: int, message: str) -> None:
        self.code = code
        self.http_code = http_code
        self.message = message

    def __str__(self) -> str:
        return self.message


class ApiError(Exception):
    """Raised by a handler to end the request with the given status."""

    def __init__(self, status: ErrorCode, data: Any = None) -> None:
        super().__init__(status.message)
        self.status = status
        self.data = data


def payload(data: Any, status: ErrorCode) -> dict[str, Any]:
    """Build the response envelope for ``data`` under ``status``."""
    return {"status": status.code, "message": status.message, "data": data}


def _encode(value: Any) -> Any:
    to_json = getattr(value, "to_json", None)
    if callable(to_json):
        return to_json()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def respond(data: Any, status: ErrorCode) -> Response:
    """Serialize the envelope into a JSON response with the status's HTTP code."""
    body = json.dumps(payload(data, status), ensure_ascii=False, default=_encode)
    return Response(body, status=status.http_code, mimetype="application/json")