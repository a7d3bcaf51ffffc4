"""Financial JSON API blueprint."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("financial", __name__, url_prefix="/api/financial")

from . import routes  # noqa: E402,F401 - ensure routes register

__all__ = ["bp"]
