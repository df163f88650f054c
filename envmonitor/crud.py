"""Generic create/list/retrieve/update/destroy views over a model."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping
from functools import wraps
from typing import Any, Optional

from flask import request
from sqlalchemy import Select, select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError

from .errors import ApiError, ErrorCode, respond

Updater = Callable[[Any, dict], None]
FilterFn = Callable[[Select, Mapping[str, Any]], Select]

DELETED_MESSAGE = "删除成功"


def to_json_map(obj: Any, fields: Optional[Iterable[str]] = None) -> dict[str, Any]:
    """Serialize ``obj`` and keep only the keys named in ``fields`` (all if ``None``)."""
    to_json = getattr(obj, "to_json", None)
    mapping = to_json() if callable(to_json) else dict(obj)
    if fields is None:
        return mapping
    wanted = set(fields)
    return {key: value for key, value in mapping.items() if key in wanted}


def _guarded(view: Callable) -> Callable:
    """Turn an ``ApiError`` raised by ``view`` into its JSON response."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return view(*args, **kwargs)
        except ApiError as exc:
            return respond(exc.data, exc.status)

    return wrapper


def _read_object() -> dict[str, Any]:
    """Decode the request body as a JSON object; an empty body is ``{}``."""
    body = request.get_data()
    if not body:
        return {}
    try:
        document = json.loads(body)
    except ValueError as exc:
        raise ApiError(ErrorCode.MISSING_PARAM) from exc
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ApiError(ErrorCode.MISSING_PARAM)
    return document


class ResourceHandler:
    """Builds JSON views for one model class."""

    def __init__(self, session_factory: Callable, model: type) -> None:
        self._session_factory = session_factory
        self._model = model

    def _columns(self) -> set[str]:
        return {attr.key for attr in sa_inspect(self._model).column_attrs}

    def default_updater(self, obj: Any, data: Mapping[str, Any]) -> None:
        """Assign every key of ``data`` to the column of the same name."""
        unknown = set(data) - self._columns()
        if unknown:
            raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
        for key, value in data.items():
            setattr(obj, key, value)

    def _updater(self, fields: Optional[list], updater: Optional[Updater]) -> Updater:
        if updater is not None:
            return updater
        if fields is None:
            return self.default_updater
        allowed = set(fields)
        return lambda obj, data: self.default_updater(
            obj, {key: value for key, value in data.items() if key in allowed}
        )

    def _by_uuid(self, statement: Select, params: Mapping[str, Any]) -> Select:
        return statement.where(self._model.uuid == params.get("uuid"))

    def _find(self, session: Any, filter_fn: Optional[FilterFn], params: Mapping) -> Any:
        statement = (filter_fn or self._by_uuid)(select(self._model), params)
        try:
            obj = session.scalars(statement).first()
        except SQLAlchemyError as exc:
            raise ApiError(ErrorCode.NOT_FOUND) from exc
        if obj is None:
            raise ApiError(ErrorCode.NOT_FOUND)
        return obj

    @staticmethod
    def _apply(apply: Updater, obj: Any, data: dict) -> None:
        try:
            apply(obj, data)
        except ValueError as exc:
            raise ApiError(ErrorCode.BAD_REQUEST) from exc

    @staticmethod
    def _commit(session: Any) -> None:
        try:
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise ApiError(ErrorCode.INTERNAL_SERVER) from exc

    def create(self, fields: Optional[list] = None, updater: Optional[Updater] = None) -> Callable:
        apply = self._updater(fields, updater)

        @_guarded
        def view(**params: Any) -> Any:
            data = _read_object()
            with self._session_factory() as session:
                obj = self._model()
                self._apply(apply, obj, data)
                session.add(obj)
                self._commit(session)
                return respond(obj.to_json(), ErrorCode.CREATED)

        return view

    def list(self, fields: Optional[list] = None, filter_fn: Optional[FilterFn] = None) -> Callable:
        @_guarded
        def view(**params: Any) -> Any:
            statement = select(self._model)
            if filter_fn is not None:
                statement = filter_fn(statement, params)
            with self._session_factory() as session:
                try:
                    objects = session.scalars(statement).all()
                except SQLAlchemyError as exc:
                    raise ApiError(ErrorCode.INTERNAL_SERVER) from exc
                return respond([to_json_map(obj, fields) for obj in objects], ErrorCode.OK)

        return view

    def retrieve(self, fields: Optional[list] = None, filter_fn: Optional[FilterFn] = None) -> Callable:
        @_guarded
        def view(**params: Any) -> Any:
            with self._session_factory() as session:
                obj = self._find(session, filter_fn, params)
                return respond(to_json_map(obj, fields), ErrorCode.OK)

        return view

    def update(
        self,
        fields: Optional[list] = None,
        filter_fn: Optional[FilterFn] = None,
        updater: Optional[Updater] = None,
    ) -> Callable:
        apply = self._updater(fields, updater)

        @_guarded
        def view(**params: Any) -> Any:
            with self._session_factory() as session:
                obj = self._find(session, filter_fn, params)
                data = _read_object()
                self._apply(apply, obj, data)
                self._commit(session)
                return respond(obj.to_json(), ErrorCode.OK)

        return view

    def destroy(self, filter_fn: Optional[FilterFn] = None) -> Callable:
        @_guarded
        def view(**params: Any) -> Any:
            with self._session_factory() as session:
                obj = self._find(session, filter_fn, params)
                session.delete(obj)
                self._commit(session)
            return respond({"message": DELETED_MESSAGE}, ErrorCode.OK)

        return view