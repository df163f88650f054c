"""The web application: routes and the command that serves it."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from typing import Any, Optional

from flask import Flask

from .auth import AuthHandler, AuthMiddleware
from .config import Config, load_config
from .database import DatabaseSetupError, setup_mongo, setup_sql
from .devices import DeviceHandler

logger = logging.getLogger(__name__)

HOST = "0.0.0.0"
PORT = 5000


def create_app(config: Config, session_factory: Callable, mongo_client: Any = None) -> Flask:
    """Build the Flask application with every route wired to its handler."""
    app = Flask(__name__)
    app.extensions["envmonitor.config"] = config
    app.extensions["mongo"] = mongo_client

    devices = DeviceHandler(session_factory)
    auth = AuthHandler(session_factory, config.jwt.secret, config.jwt.expires)
    middleware = AuthMiddleware(session_factory, config.jwt.secret)

    def logged_in(view: Callable) -> Callable:
        return middleware.auth_required(view)

    def admin(view: Callable) -> Callable:
        return middleware.auth_required(middleware.admin_only(view))

    routes = [
        ("/devices/my_devices", "my_devices", ["GET"], logged_in(devices.my_devices)),
        ("/devices/my_devices/<uuid>", "retrieve_my_device", ["GET"],
         logged_in(devices.retrieve_my_device)),
        ("/devices/<uuid>/bind", "bind_device", ["POST"], logged_in(devices.bind)),
        ("/devices/<uuid>/unbind", "unbind_device", ["POST"], logged_in(devices.unbind)),
        ("/devices/", "list_devices", ["GET"], admin(devices.list)),
        ("/devices/<uuid>", "retrieve_device", ["GET"], admin(devices.retrieve)),
        ("/devices/", "create_device", ["POST"], admin(devices.create)),
        ("/devices/<uuid>", "update_device", ["PUT"], admin(devices.update)),
        ("/devices/<uuid>", "destroy_device", ["DELETE"], admin(devices.destroy)),
        ("/auth/login", "login", ["POST"], auth.login),
        ("/auth/logout", "logout", ["POST"], logged_in(auth.logout)),
        ("/auth/register", "register", ["POST"], auth.register),
    ]
    for rule, endpoint, methods, view in routes:
        app.add_url_rule(rule, endpoint, view, methods=methods)
    return app


def main(argv: Optional[list] = None) -> int:
    """Connect to the databases and serve the application on port 5000."""
    parser = argparse.ArgumentParser(prog="envmonitor", description="Environment monitor API server.")
    parser.add_argument("--config", default="config.json", help="path of the JSON configuration")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config(args.config)
        session_factory = setup_sql(config.sql)
        mongo_client = setup_mongo(config.mongo)
    except (OSError, ValueError, DatabaseSetupError) as exc:
        logger.error("%s", exc)
        return 1

    app = create_app(config, session_factory, mongo_client)
    try:
        app.run(host=HOST, port=PORT)
    except OSError as exc:
        logger.error("服务器启动失败: %s", exc)
        return 1
    return 0