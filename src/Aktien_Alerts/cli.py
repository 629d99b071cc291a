"""CLI entry point for Aktien Alerts.

Provides the ``aktien-alerts`` command with subcommands for running the alert
check, polling in the foreground, inspecting market data, and managing alerts.

This is the ONLY module where console output is allowed. All other modules
use ``logging``. Async internals are bridged to typer's synchronous interface
via ``asyncio.run()``.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from decimal import Decimal, InvalidOperation
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from Aktien_Alerts.alerts.poller import AlertPoller
from Aktien_Alerts.config import load_settings
from Aktien_Alerts.logging_config import configure_logging
from Aktien_Alerts.models import (
    AbsoluteAlert,
    AlertDirection,
    AlertKind,
    CandleResolution,
    ChartPeriod,
    CycleResult,
    PercentAlert,
    parse_alert,
)
from Aktien_Alerts.runtime import open_runtime
from Aktien_Alerts.services.market_hours import market_status

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer app and sub-apps
# ---------------------------------------------------------------------------

app = typer.Typer(name="aktien-alerts", help="Stock price alerts backed by Finnhub market data")
alerts_app = typer.Typer(help="Manage price alerts")
app.add_typer(alerts_app, name="alerts")

# Rich console for formatted output
console = Console()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Suppress info logging")] = False,
) -> None:
    """Stock price alerts backed by Finnhub market data."""
    configure_logging(verbose=verbose, quiet=quiet)


def _split_symbols(raw: str) -> list[str] | None:
    symbols = [s.strip().upper() for s in raw.split(",") if s.strip()]
    return symbols or None


def _money(value: Decimal) -> str:
    return f"${value:,.2f}"


# ---------------------------------------------------------------------------
# check-alerts / watch
# ---------------------------------------------------------------------------


@app.command("check-alerts")
def check_alerts(
    symbols: Annotated[str, typer.Option(help="Comma-separated symbols to restrict to")] = "",
    user: Annotated[str | None, typer.Option(help="Only evaluate this user's alerts")] = None,
) -> None:
    """Run one evaluation cycle over all active alerts."""
    result = asyncio.run(_check_alerts_async(symbols=_split_symbols(symbols), user_id=user))
    _render_cycle(result)


async def _check_alerts_async(*, symbols: list[str] | None, user_id: str | None) -> CycleResult:
    async with open_runtime(load_settings()) as runtime:
        return await runtime.engine.run_evaluation_cycle(symbols, user_id=user_id)


def _render_cycle(result: CycleResult) -> None:
    color = "green" if result.triggered_count else "dim"
    console.print(
        f"Checked {result.checked_count} alert(s), "
        f"[{color}]{result.triggered_count} triggered[/{color}]"
    )
    if result.missing_symbols:
        console.print(f"[yellow]No quote for: {', '.join(result.missing_symbols)}[/yellow]")


@app.command()
def watch(
    user: Annotated[str | None, typer.Option(help="Only evaluate this user's alerts")] = None,
    cycles: Annotated[
        int | None, typer.Option(min=1, help="Stop after this many cycles (default: forever)")
    ] = None,
) -> None:
    """Poll alerts in the foreground: every 15s while the market is open, else 60s."""
    console.print("[bold]Watching alerts.[/bold] Press Ctrl+C to stop.")
    try:
        completed = asyncio.run(_watch_async(user_id=user, max_cycles=cycles))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
        return
    console.print(f"Completed {completed} cycle(s).")


async def _watch_async(*, user_id: str | None, max_cycles: int | None) -> int:
    async with open_runtime(load_settings()) as runtime:
        poller = AlertPoller(runtime.engine, user_id=user_id)
        return await poller.run(asyncio.Event(), max_cycles=max_cycles)


# ---------------------------------------------------------------------------
# Market data commands
# ---------------------------------------------------------------------------


@app.command()
def quote(
    symbols: Annotated[list[str], typer.Argument(help="Ticker symbols to quote")],
) -> None:
    """Show the latest quote for one or more symbols."""
    asyncio.run(_quote_async(symbols=[s.upper().strip() for s in symbols]))


async def _quote_async(*, symbols: list[str]) -> None:
    async with open_runtime(load_settings()) as runtime:
        quotes = await runtime.market_data.get_quotes(symbols)
        if runtime.settings.demo_mode:
            console.print("[dim]Demo mode: prices are synthetic.[/dim]")

    table = Table(title="Quotes")
    table.add_column("Symbol", style="bold", width=8)
    table.add_column("Price", justify="right", width=12)
    table.add_column("Change", justify="right", width=12)
    table.add_column("Change %", justify="right", width=10)
    table.add_column("Prev Close", justify="right", width=12)

    for symbol, q in quotes.items():
        if q is None:
            table.add_row(symbol, "[red]n/a[/red]", "", "", "")
            continue
        color = "green" if q.change >= 0 else "red"
        table.add_row(
            symbol,
            _money(q.current),
            f"[{color}]{q.change:+.2f}[/{color}]",
            f"[{color}]{q.change_percent:+.2f}%[/{color}]",
            _money(q.previous_close),
        )
    console.print(table)


@app.command()
def candles(
    symbol: Annotated[str, typer.Argument(help="Ticker symbol")],
    period: Annotated[ChartPeriod, typer.Option(help="Look-back window")] = ChartPeriod.WEEK,
) -> None:
    """Show daily candles for a symbol."""
    asyncio.run(_candles_async(symbol=symbol.upper().strip(), period=period))


async def _candles_async(*, symbol: str, period: ChartPeriod) -> None:
    to_ts = int(datetime.datetime.now(datetime.UTC).timestamp())
    from_ts = to_ts - period.days * 86_400
    async with open_runtime(load_settings()) as runtime:
        series = await runtime.market_data.get_candles(
            symbol, CandleResolution.DAY, from_ts, to_ts
        )

    if series is None:
        console.print(f"[yellow]No candle data for {symbol}.[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"{symbol} daily candles ({period.value})")
    table.add_column("Date", width=12)
    table.add_column("Open", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Low", justify="right")
    table.add_column("Close", justify="right")
    table.add_column("Volume", justify="right")
    for i, ts in enumerate(series.timestamps):
        day = datetime.datetime.fromtimestamp(ts, datetime.UTC).date().isoformat()
        table.add_row(
            day,
            f"{series.open[i]:.2f}",
            f"{series.high[i]:.2f}",
            f"{series.low[i]:.2f}",
            f"{series.close[i]:.2f}",
            f"{series.volume[i]:,}",
        )
    console.print(table)


@app.command()
def profile(
    symbol: Annotated[str, typer.Argument(help="Ticker symbol")],
) -> None:
    """Show company metadata for a symbol."""
    asyncio.run(_profile_async(symbol=symbol.upper().strip()))


async def _profile_async(*, symbol: str) -> None:
    async with open_runtime(load_settings()) as runtime:
        company = await runtime.market_data.get_profile(symbol)

    if company is None:
        console.print(f"[yellow]No profile for {symbol}.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[bold]{company.name}[/bold] ({company.symbol})")
    console.print(f"Exchange: {company.exchange}")
    if company.industry:
        console.print(f"Industry: {company.industry}")
    if company.web_url:
        console.print(f"Web: {company.web_url}")


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Port to listen on")] = 8000,
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from Aktien_Alerts.web.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


@app.command("market-status")
def market_status_command() -> None:
    """Show whether the US market is open and the current poll interval."""
    status = market_status()
    state = "[green]open[/green]" if status.is_open else "[red]closed[/red]"
    console.print(f"US market is {state}; polling every {status.next_poll_seconds}s.")


# ---------------------------------------------------------------------------
# alerts sub-commands
# ---------------------------------------------------------------------------


@alerts_app.command("add")
def alerts_add(
    symbol: Annotated[str, typer.Argument(help="Ticker symbol")],
    direction: Annotated[AlertDirection, typer.Option(help="rise or drop")],
    user: Annotated[str, typer.Option(help="Owner of the alert")],
    percent: Annotated[str | None, typer.Option(help="Percent move from baseline")] = None,
    baseline: Annotated[str | None, typer.Option(help="Reference price for --percent")] = None,
    target: Annotated[str | None, typer.Option(help="Absolute target price")] = None,
) -> None:
    """Create a percent alert (--percent/--baseline) or an absolute one (--target)."""
    try:
        values = {
            name: Decimal(raw)
            for name, raw in (("percent", percent), ("baseline", baseline), ("target_price", target))
            if raw is not None
        }
    except InvalidOperation as exc:
        console.print("[red]Prices and percentages must be numbers.[/red]")
        raise typer.Exit(code=1) from exc

    kind = AlertKind.ABSOLUTE if "target_price" in values else AlertKind.PERCENT
    try:
        alert = parse_alert(
            {"user_id": user, "symbol": symbol, "direction": direction, "kind": kind, **values}
        )
    except ValidationError as exc:
        console.print(f"[red]Invalid alert:[/red] {exc.error_count()} error(s)")
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"])
            console.print(f"  {loc}: {err['msg']}")
        raise typer.Exit(code=1) from exc

    asyncio.run(_alerts_add_async(alert=alert))


async def _alerts_add_async(*, alert: PercentAlert | AbsoluteAlert) -> None:
    async with open_runtime(load_settings()) as runtime:
        await runtime.repository.create(alert)
    console.print(f"[green]Alert {alert.id} created: {_describe(alert)}[/green]")


@alerts_app.command("list")
def alerts_list(
    user: Annotated[str, typer.Option(help="Owner of the alerts")],
) -> None:
    """List a user's alerts, newest first."""
    asyncio.run(_alerts_list_async(user_id=user))


async def _alerts_list_async(*, user_id: str) -> None:
    async with open_runtime(load_settings()) as runtime:
        alerts = await runtime.repository.list_for_user(user_id)

    if not alerts:
        console.print("[yellow]No alerts found.[/yellow]")
        return

    table = Table(title=f"Alerts for {user_id}")
    table.add_column("ID", width=32)
    table.add_column("Condition", width=40)
    table.add_column("Status", width=12)
    for alert in alerts:
        status = "[green]triggered[/green]" if alert.triggered else "active"
        table.add_row(alert.id, _describe(alert), status)
    console.print(table)


@alerts_app.command("delete")
def alerts_delete(
    alert_id: Annotated[str, typer.Argument(help="Alert ID to delete")],
    user: Annotated[str, typer.Option(help="Owner of the alert")],
) -> None:
    """Delete one alert."""
    asyncio.run(_alerts_delete_async(alert_id=alert_id, user_id=user))


async def _alerts_delete_async(*, alert_id: str, user_id: str) -> None:
    async with open_runtime(load_settings()) as runtime:
        deleted = await runtime.repository.delete(alert_id, user_id=user_id)
    if not deleted:
        console.print(f"[yellow]Alert {alert_id} not found.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]Alert {alert_id} deleted.[/green]")


def _describe(alert: PercentAlert | AbsoluteAlert) -> str:
    if isinstance(alert, AbsoluteAlert):
        return f"{alert.symbol} {alert.direction.value} to {_money(alert.target_price)}"
    sign = "+" if alert.direction is AlertDirection.RISE else "-"
    return f"{alert.symbol} {sign}{alert.percent}% from {_money(alert.baseline)}"
