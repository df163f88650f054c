"""Service configuration loaded from a JSON file."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Optional


@dataclass
class SQLConfig:
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    db_name: str = ""
    charset: str = ""


@dataclass
class MongoConfig:
    host: str = ""
    port: int = 0
    db_name: str = ""


@dataclass
class JWTConfig:
    secret: str = ""
    expires: int = 0
    refresh: int = 0


def _section(cls: type, data: Any, name: str) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"{name}: expected an object")
    values = {}
    for item in fields(cls):
        value = data.get(item.name)
        if value is None:
            continue
        if item.type is int or item.type == "int":
            valid = isinstance(value, int) and not isinstance(value, bool)
            kind = "an integer"
        else:
            valid = isinstance(value, str)
            kind = "a string"
        if not valid:
            raise ValueError(f"{name}.{item.name}: expected {kind}")
        values[item.name] = value
    return cls(**values)


@dataclass
class Config:
    sql: SQLConfig = field(default_factory=SQLConfig)
    mongo: MongoConfig = field(default_factory=MongoConfig)
    jwt: JWTConfig = field(default_factory=JWTConfig)

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> "Config":
        """Build a configuration from the decoded JSON document."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ValueError("configuration must be an object")
        return cls(
            sql=_section(SQLConfig, data.get("mysql"), "mysql"),
            mongo=_section(MongoConfig, data.get("mongodb"), "mongodb"),
            jwt=_section(JWTConfig, data.get("jwt"), "jwt"),
        )


def load_config(path: str = "config.json") -> Config:
    """Read and decode the configuration file; raises OSError or ValueError."""
    with open(path, encoding="utf-8") as handle:
        try:
            document = json.load(handle)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Failed to decode {path}: {exc}") from exc
    try:
        return Config.from_dict(document)
    except ValueError as exc:
        raise ValueError(f"Failed to decode {path}: {exc}") from exc