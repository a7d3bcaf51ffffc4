"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .domain.repositories import LedgerRepository
from .infra.database import SessionFactory, bootstrap_database
from .infra.repositories import SQLModelLedgerRepository


@dataclass
class AppContext:
    """Configuration, database handles and the repository shared by every request."""

    config: BaseConfig
    engine: Optional[Engine]
    session_factory: Optional[SessionFactory]
    repository: LedgerRepository

    @property
    def expiring_window_days(self) -> int:
        return self.config.EXPIRING_WINDOW_DAYS

    @property
    def top_donors_limit(self) -> int:
        return self.config.TOP_DONORS_LIMIT


def create_app_context(
    config: Optional[BaseConfig] = None, repository: Optional[LedgerRepository] = None
) -> AppContext:
    """Create and initialize the application context.

    Passing ``repository`` skips database setup entirely (used with fakes).
    """

    if config is None:
        config = BaseConfig()

    if repository is not None:
        return AppContext(config=config, engine=None, session_factory=None, repository=repository)

    engine, session_factory = bootstrap_database(config)
    return AppContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        repository=SQLModelLedgerRepository(session_factory),
    )
