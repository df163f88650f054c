# envmonitor

A small Flask backend for an indoor environment monitor. It keeps user
accounts and registered monitoring devices in MySQL (through SQLAlchemy),
lets users bind and unbind devices to their own account, and lets
administrators manage all devices.

Every response has the same JSON shape:

```json
{"status": 0, "message": "...", "data": ...}
```

`status` is an application code from `envmonitor.errors.ErrorCode` (`0` on
success) and the HTTP status code is set to match. Handlers end a request
early by raising `envmonitor.errors.ApiError`.

## Installation

```
pip install .
```

The database connection URL uses SQLAlchemy's `mysql+pymysql` dialect, so
the PyMySQL driver has to be installed as well:

```
pip install pymysql
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Configuration

The server reads a JSON file, `config.json` in the current working directory
unless another path is given with `--config`:

```json
{
  "mysql": {
    "host": "localhost",
    "port": 3306,
    "username": "user",
    "password": "password",
    "db_name": "envmonitor",
    "charset": "utf8mb4"
  },
  "mongodb": {
    "host": "localhost",
    "port": 27017,
    "db_name": "envmonitor"
  },
  "jwt": {
    "secret": "secret",
    "expires": 3600,
    "refresh": 86400
  }
}
```

Missing keys take empty or zero defaults; a value of the wrong type is an
error. `envmonitor.config.load_config(path)` returns a `Config` with `sql`,
`mongo` and `jwt` sections.

On start-up (`envmonitor.database.setup_sql`) the MySQL database is created
if it does not exist yet and the `users` and `devices` tables are created.
`setup_mongo` connects to MongoDB and pings it; if either store cannot be
reached, start-up fails.

## Running

```
envmonitor
envmonitor --config /path/to/config.json
```

The server listens on `0.0.0.0`, port 5000. The command exits with status 1
if the configuration cannot be read or a database cannot be set up.

## Endpoints

Authentication uses an HS256 JWT stored in the `Authorization` cookie. Login
sets the cookie (valid for one hour; the token itself expires after
`jwt.expires` seconds); logout clears it. Login is refused while the cookie is
already present. Passwords are stored as hex MD5 digests.

| Method | Path                         | Access        | Purpose                                     |
|--------|------------------------------|---------------|---------------------------------------------|
| POST   | `/auth/register`             | anyone        | create an account (`username`, `password`)  |
| POST   | `/auth/login`                | anyone        | log in and receive the cookie               |
| POST   | `/auth/logout`               | logged in     | clear the cookie                            |
| GET    | `/devices/my_devices`        | logged in     | devices bound to the current user           |
| GET    | `/devices/my_devices/<uuid>` | logged in     | one of the current user's devices           |
| POST   | `/devices/<uuid>/bind`       | logged in     | bind an unowned device to yourself          |
| POST   | `/devices/<uuid>/unbind`     | logged in     | release a device you own                    |
| GET    | `/devices/`                  | administrator | list all devices                            |
| GET    | `/devices/<uuid>`            | administrator | show one device                             |
| POST   | `/devices/`                  | administrator | register a device (`device_id`, `secret`)   |
| PUT    | `/devices/<uuid>`            | administrator | change `device_id`, `status` or `owner_id`  |
| DELETE | `/devices/<uuid>`            | administrator | remove a device                             |

## Using the application object

`envmonitor.app.create_app(config, session_factory, mongo_client)` builds the
Flask application from a loaded configuration and an SQLAlchemy session
factory, so it can be served by any WSGI server or exercised with Flask's
test client.

`envmonitor.crud.ResourceHandler` builds generic create, list, retrieve,
update and destroy views for a model; `DeviceHandler` and `UserHandler` in
`envmonitor.devices` are built on it.

## Signed uploads

`envmonitor.data.DataHandler.upload` checks a device upload: the device id,
a millisecond timestamp, a full set of readings and an MD5 signature of
`"<device_id>:<timestamp>:<secret>"`. Requests older than one minute are
rejected, and a signature already seen within the last two minutes is treated
as a replay. The signature can be computed with `envmonitor.data.sign`:

```python
import time
from envmonitor.data import sign

timestamp = int(time.time() * 1000)
signature = sign("device-0001", timestamp, "secret")
```

## What this package does not do

- No route is registered for data uploads or for listing stored data;
  `DataHandler` has to be wired into an application by hand.
- Accepted uploads are only verified, never stored, and `setup_sql` does not
  create the `data` table.
- The user administration views in `UserHandler` are not routed.
- The MongoDB client is connected and kept on the application
  (`app.extensions["mongo"]`) but nothing reads from or writes to it.