"""Sensor data upload with signature checks and replay protection."""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable
from typing import Any

from .cache import ExpiringCache
from .crud import ResourceHandler, _guarded, _read_object
from .errors import ApiError, ErrorCode, respond
from .models import Data, DataEntry, Device

REQUEST_WINDOW_MS = 60_000
REPLAY_TTL = 2 * 60.0

DATA_CACHE = ExpiringCache()


def sign(device_id: str, timestamp: int, secret: str) -> str:
    """Hex MD5 of ``device_id:timestamp:secret``."""
    return hashlib.md5(f"{device_id}:{timestamp}:{secret}".encode("utf-8")).hexdigest()


def _required_str(body: dict, name: str) -> str:
    value = body.get(name)
    if not isinstance(value, str) or not value:
        raise ApiError(ErrorCode.MISSING_PARAM)
    return value


class DataHandler:
    """Views for listing stored data and accepting device uploads."""

    def __init__(self, session_factory: Callable) -> None:
        self._session_factory = session_factory
        self._crud = ResourceHandler(session_factory, Data)
        self.cache = DATA_CACHE

    def list(self) -> Any:
        return self._crud.list(None, None)()

    @_guarded
    def upload(self) -> Any:
        body = _read_object()
        device_id = _required_str(body, "device_id")
        timestamp = body.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, int) or timestamp == 0:
            raise ApiError(ErrorCode.MISSING_PARAM)
        try:
            DataEntry.from_mapping(body.get("data"))
        except ValueError as exc:
            raise ApiError(ErrorCode.MISSING_PARAM) from exc
        signature = _required_str(body, "signature")

        with self._session_factory() as session:
            device = session.get(Device, device_id)
            if device is None:
                raise ApiError(ErrorCode.UNKNOWN_DEVICE)
            secret = device.secret or ""

        if time.time() * 1000 - timestamp > REQUEST_WINDOW_MS:
            raise ApiError(ErrorCode.EXPIRED_REQUEST)
        if signature != sign(device_id, timestamp, secret):
            raise ApiError(ErrorCode.INVALID_SIGNATURE)
        if signature in self.cache:
            raise ApiError(ErrorCode.REPLAY_ATTACK)
        self.cache.set(signature, True, REPLAY_TTL)
        return respond(None, ErrorCode.OK)