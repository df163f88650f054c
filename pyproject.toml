[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "envmonitor"
version = "0.1.0"
description = "HTTP backend for an indoor environment monitor: user accounts, device registration and device binding"
requires-python = ">=3.10"
keywords = ["environment", "monitoring", "sensors", "iot", "flask", "rest", "jwt"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "flask>=2.3",
    "sqlalchemy>=2.0",
    "pyjwt>=2.8",
    "pymongo>=4.6",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "freezegun>=1.4",
]

[project.scripts]
envmonitor = "envmonitor.app:main"

[tool.hatch.build.targets.wheel]
packages = ["envmonitor"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
