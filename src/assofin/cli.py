"""Flask CLI commands for AssoFin."""

from __future__ import annotations

from datetime import date

import click
from flask import current_app

from .errors import FinanceError
from .money import format_cents
from .params import parse_date, parse_period, parse_year


def _context():
    return current_app.extensions["assofin"]


def _as_of(raw: str | None) -> date:
    return parse_date(raw, "as_of", required=False) or date.today()


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("assofin-sweep")
    @click.option("--as-of", "as_of", default=None, help="Evaluation date (YYYY-MM-DD)")
    @click.option("--actor", default="system", show_default=True, help="Identity recorded in logs")
    def assofin_sweep(as_of: str | None, actor: str) -> None:
        """Persist the expired status of lapsed subscriptions."""

        from .services.subscriptions import sweep_expired

        try:
            swept = sweep_expired(repository=_context().repository, today=_as_of(as_of), actor=actor)
        except FinanceError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"Expired {len(swept)} subscription(s).")

    @app.cli.command("assofin-forecast")
    @click.argument("period")
    @click.argument("year")
    @click.option("--as-of", "as_of", default=None, help="Evaluation date (YYYY-MM-DD)")
    @click.option("--actor", default="system", show_default=True, help="Identity stored on forecasts")
    def assofin_forecast(period: str, year: str, as_of: str | None, actor: str) -> None:
        """Generate forecasts for PERIOD (Q1..Q4, M1..M12, annual) of YEAR."""

        from .services.forecasting import generate_forecasts

        try:
            target = parse_period(period, parse_year(year, required=True), required=True)
            rows = generate_forecasts(
                repository=_context().repository,
                target=target,
                created_by=actor,
                today=_as_of(as_of),
            )
        except FinanceError as exc:
            raise click.ClickException(exc.message) from exc

        click.echo(f"Forecasts for {target.label}: {len(rows)}")
        for row in rows:
            click.echo(
                f"  category {row.category_id}: {format_cents(row.forecasted_amount)}"
                f" ({row.confidence}, {row.based_on})"
            )

    @app.cli.command("assofin-overview")
    @click.option("--year", default=None, help="Year to summarise (defaults to the current year)")
    @click.option("--as-of", "as_of", default=None, help="Evaluation date (YYYY-MM-DD)")
    def assofin_overview(year: str | None, as_of: str | None) -> None:
        """Print the treasury overview."""

        from .services.dashboard import overview

        try:
            summary = overview(
                repository=_context().repository, year=parse_year(year), today=_as_of(as_of)
            )
        except FinanceError as exc:
            raise click.ClickException(exc.message) from exc

        click.echo(f"Overview {summary['year']}")
        click.echo(f"  Subscriptions: {format_cents(summary['subscriptions']['total'])}"
                   f" ({summary['subscriptions']['active_members']} active members)")
        click.echo(f"  Revenues:      {format_cents(summary['revenues']['total'])}")
        click.echo(f"  Expenses:      {format_cents(summary['expenses']['total'])}"
                   f" ({summary['expenses']['count']} entries)")
        click.echo(f"  Balance:       {format_cents(summary['treasury']['balance'])}"
                   f" [{summary['treasury']['trend']}]")
