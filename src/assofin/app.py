"""AssoFin application factory."""

from __future__ import annotations

from importlib import import_module
from typing import Iterable, Optional

from flask import Flask

from . import cli as _cli
from .config import BaseConfig, DevConfig, TestConfig
from .context import create_app_context
from .domain.repositories import LedgerRepository
from .logging_config import setup_logging

EXTENSION_KEY = "assofin"

_CONFIG_MAP = {
    "development": DevConfig,
    "testing": TestConfig,
    "default": BaseConfig,
}


def _resolve_config(name: str | None) -> type[BaseConfig]:
    """Return the config class for the provided environment name."""

    if not name:
        return BaseConfig
    return _CONFIG_MAP.get(name.lower(), BaseConfig)


def _blueprint_paths() -> Iterable[str]:
    yield "assofin.blueprints.financial"


def create_app(
    config: BaseConfig | str | None = None,
    repository: Optional[LedgerRepository] = None,
) -> Flask:
    """Create and configure the Flask application instance."""

    app = Flask(__name__, instance_relative_config=True)
    if isinstance(config, BaseConfig):
        config_obj = config
    else:
        config_obj = _resolve_config(config)()
    app.config.from_object(config_obj)
    app.config["ASSOFIN_CONFIG"] = config_obj

    setup_logging(config_obj)
    app.extensions[EXTENSION_KEY] = create_app_context(config_obj, repository=repository)

    _register_blueprints(app)
    _cli.init_app(app)
    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        blueprint = getattr(module, "bp")
        app.register_blueprint(blueprint)
