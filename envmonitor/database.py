"""Connections to the relational store and the document store."""

from __future__ import annotations

import logging
import re
from typing import Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from .config import MongoConfig, SQLConfig
from .models import Base, Device, User

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_MS = 10_000
POOL_SIZE = 10
MAX_OPEN_CONNECTIONS = 100
CONNECTION_LIFETIME = 3600

_IDENTIFIER = re.compile(r"[A-Za-z0-9_$]+")


class DatabaseSetupError(RuntimeError):
    """A database could not be reached, created or migrated."""


def _check_identifier(value: str, name: str) -> None:
    if not _IDENTIFIER.fullmatch(value or ""):
        raise ValueError(f"{name}: {value!r} is not a valid identifier")


def sql_url(config: SQLConfig, with_database: bool = True) -> URL:
    """Build the MySQL URL for ``config``, with or without its database."""
    query = {"charset": config.charset} if config.charset else {}
    return URL.create(
        "mysql+pymysql",
        username=config.username or None,
        password=config.password or None,
        host=config.host or None,
        port=config.port or None,
        database=config.db_name if with_database else None,
        query=query,
    )


def setup_sql(config: SQLConfig) -> sessionmaker:
    """Create the database if needed, migrate the tables and return a session factory."""
    _check_identifier(config.db_name, "db_name")
    if config.charset:
        _check_identifier(config.charset, "charset")

    statement = f"CREATE DATABASE IF NOT EXISTS `{config.db_name}`"
    if config.charset:
        statement += f" CHARACTER SET {config.charset}"

    server = create_engine(sql_url(config, with_database=False), poolclass=NullPool)
    try:
        try:
            connection = server.connect()
        except SQLAlchemyError as exc:
            raise DatabaseSetupError(f"数据库连接失败: {exc}") from exc
        with connection:
            try:
                connection.execute(text(statement))
                connection.commit()
            except SQLAlchemyError as exc:
                raise DatabaseSetupError(f"数据库创建失败: {exc}") from exc
    finally:
        server.dispose()

    engine = create_engine(
        sql_url(config, with_database=True),
        pool_size=POOL_SIZE,
        max_overflow=MAX_OPEN_CONNECTIONS - POOL_SIZE,
        pool_recycle=CONNECTION_LIFETIME,
        pool_pre_ping=True,
    )
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseSetupError(f"数据库连接测试失败: {exc}") from exc

    logger.info("数据库连接成功")
    try:
        Base.metadata.create_all(engine, tables=[User.__table__, Device.__table__])
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseSetupError(f"数据库迁移失败: {exc}") from exc

    return sessionmaker(bind=engine)


def mongo_uri(config: MongoConfig) -> str:
    """Build the MongoDB connection string for ``config``."""
    return f"mongodb://{config.host}:{config.port}/{config.db_name}"


def setup_mongo(config: MongoConfig) -> MongoClient:
    """Connect to MongoDB and check the connection with a ping."""
    client: Optional[MongoClient] = None
    try:
        client = MongoClient(
            mongo_uri(config),
            connectTimeoutMS=CONNECT_TIMEOUT_MS,
            serverSelectionTimeoutMS=CONNECT_TIMEOUT_MS,
        )
    except PyMongoError as exc:
        raise DatabaseSetupError(f"MongoDB连接失败: {exc}") from exc
    try:
        client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        raise DatabaseSetupError(f"MongoDB连接测试失败: {exc}") from exc
    return client