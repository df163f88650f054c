"""Database models: users, devices and aggregated sensor data."""

from __future__ import annotations

import uuid as uuid_lib
from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import DeclarativeBase, Mapped, composite, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for every table."""


def _new_uuid() -> str:
    return str(uuid_lib.uuid4())


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _loaded(obj: Any, name: str) -> bool:
    return name not in sa_inspect(obj).unloaded


class _Record:
    """Primary key and creation time shared by every table."""

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_uuid)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime, default=datetime.now)

    def _record_json(self) -> dict[str, Any]:
        return {"uuid": self.uuid, "created_at": _iso(self.created_at)}


@dataclass(frozen=True)
class DataEntry:
    """One set of environmental readings."""

    temperature: float = 0.0
    humidity: float = 0.0
    fresh_air: float = 0.0
    ozone: float = 0.0
    nitro_dio: float = 0.0
    methanal: float = 0.0
    pm2_5: float = 0.0
    carb_momo: float = 0.0
    bacteria: float = 0.0
    radon: float = 0.0

    @classmethod
    def from_mapping(cls, mapping: Any) -> "DataEntry":
        """Build an entry from a JSON object; every reading is required and non-zero."""
        if not isinstance(mapping, Mapping):
            raise ValueError("data entry must be an object")
        values = {}
        for field in fields(cls):
            value = mapping.get(field.name)
            if value is None:
                raise ValueError(f"{field.name} is required")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{field.name} must be a number")
            # A required number may not hold its zero value.
            if value == 0:
                raise ValueError(f"{field.name} is required")
            values[field.name] = float(value)
        return cls(**values)

    def to_json(self) -> dict[str, float]:
        return {field.name: getattr(self, field.name) for field in fields(self)}


def _entry_columns(prefix: str) -> list:
    return [
        mapped_column(f"{prefix}_{field.name}", Float, nullable=True, default=0.0)
        for field in fields(DataEntry)
    ]


def _entry_json(entry: Optional[DataEntry]) -> dict[str, float]:
    return (entry or DataEntry()).to_json()


class User(_Record, Base):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(32), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(32), nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    devices: Mapped[List["Device"]] = relationship(back_populates="owner")

    def _columns_json(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "is_admin": bool(self.is_admin),
            **self._record_json(),
        }

    def to_json(self) -> dict[str, Any]:
        result = self._columns_json()
        result["devices"] = (
            [device._columns_json() for device in self.devices]
            if _loaded(self, "devices")
            else None
        )
        return result


class Device(_Record, Base):
    __tablename__ = "devices"

    device_id: Mapped[Optional[str]] = mapped_column(String(16))
    secret: Mapped[Optional[str]] = mapped_column(String(16))
    status: Mapped[int] = mapped_column(Integer, default=0)
    last_received: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.uuid"), nullable=True
    )
    owner: Mapped[Optional["User"]] = relationship(back_populates="devices")
    data: Mapped[List["Data"]] = relationship(back_populates="my_device")

    def _columns_json(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "status": self.status if self.status is not None else 0,
            "last_received": _iso(self.last_received),
            **self._record_json(),
        }

    def to_json(self) -> dict[str, Any]:
        result = self._columns_json()
        owner = self.owner if _loaded(self, "owner") else None
        result["owner"] = owner._columns_json() if owner is not None else None
        result["data"] = (
            [item._columns_json() for item in self.data] if _loaded(self, "data") else None
        )
        return result


class Data(_Record, Base):
    __tablename__ = "data"

    my_device_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("devices.uuid"), nullable=True
    )
    my_device: Mapped[Optional["Device"]] = relationship(back_populates="data")
    avg = composite(DataEntry, *_entry_columns("avg"))
    var = composite(DataEntry, *_entry_columns("var"))
    min = composite(DataEntry, *_entry_columns("min"))
    max = composite(DataEntry, *_entry_columns("max"))

    def _columns_json(self) -> dict[str, Any]:
        return {
            "device_id": self.my_device_id,
            "avg": _entry_json(self.avg),
            "var": _entry_json(self.var),
            "min": _entry_json(self.min),
            "max": _entry_json(self.max),
            **self._record_json(),
        }

    def to_json(self) -> dict[str, Any]:
        result = self._columns_json()
        device = self.my_device if _loaded(self, "my_device") else None
        result["my_device"] = device._columns_json() if device is not None else None
        return result