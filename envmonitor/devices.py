"""Views for devices and users."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Mapping

from flask import g
from sqlalchemy import Select

from .crud import ResourceHandler
from .models import Device, User

NIL_UUID = "00000000-0000-0000-0000-000000000000"


def _current_uuid() -> str:
    return g.current_user.uuid


def _device_fields(device: Device, data: Mapping[str, Any]) -> None:
    device_id = data.get("device_id")
    if not isinstance(device_id, str):
        raise ValueError("device_id is required")
    device.device_id = device_id
    secret = data.get("secret")
    if not isinstance(secret, str):
        raise ValueError("secret is required")
    device.secret = secret


def _bind(device: Device, data: Mapping[str, Any]) -> None:
    if device.owner_id and device.owner_id != NIL_UUID:
        raise ValueError("设备已绑定")
    device.owner_id = _current_uuid()


def _unbind(device: Device, data: Mapping[str, Any]) -> None:
    if device.owner_id is None or device.owner_id != _current_uuid():
        raise ValueError("设备未绑定为当前用户")
    device.owner_id = None


def _owned(statement: Select, params: Mapping[str, Any]) -> Select:
    return statement.where(Device.owner_id == _current_uuid())


def _owned_by_uuid(statement: Select, params: Mapping[str, Any]) -> Select:
    return statement.where(
        Device.uuid == params.get("uuid"), Device.owner_id == _current_uuid()
    )


class DeviceHandler:
    """Device administration plus binding devices to the current user."""

    def __init__(self, session_factory: Callable) -> None:
        self._crud = ResourceHandler(session_factory, Device)

    def create(self) -> Any:
        return self._crud.create(None, _device_fields)()

    def retrieve(self, uuid: str) -> Any:
        return self._crud.retrieve(None, None)(uuid=uuid)

    def list(self) -> Any:
        return self._crud.list(["uuid", "device_id", "status"], None)()

    def update(self, uuid: str) -> Any:
        return self._crud.update(["device_id", "status", "owner_id"], None, None)(uuid=uuid)

    def destroy(self, uuid: str) -> Any:
        return self._crud.destroy(None)(uuid=uuid)

    def bind(self, uuid: str) -> Any:
        return self._crud.update([], None, _bind)(uuid=uuid)

    def unbind(self, uuid: str) -> Any:
        return self._crud.update([], None, _unbind)(uuid=uuid)

    def my_devices(self) -> Any:
        return self._crud.list(["uuid", "status"], _owned)()

    def retrieve_my_device(self, uuid: str) -> Any:
        return self._crud.retrieve(None, _owned_by_uuid)(uuid=uuid)


class UserHandler:
    """User administration views."""

    def __init__(self, session_factory: Callable) -> None:
        self._crud = ResourceHandler(session_factory, User)

    def retrieve(self, uuid: str) -> Any:
        return self._crud.retrieve(None, None)(uuid=uuid)

    def list(self) -> Any:
        return self._crud.list(["uuid", "username", "is_admin"], None)()

    def update(self, uuid: str) -> Any:
        return self._crud.update(["username", "is_admin"], None, None)(uuid=uuid)

    def destroy(self, uuid: str) -> Any:
        return self._crud.destroy(None)(uuid=uuid)