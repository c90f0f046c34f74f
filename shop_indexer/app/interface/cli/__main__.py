import asyncio
import inspect
import logging
from typing import Optional

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from shop_indexer.app.interface.tasks import (
    TASKS,
    shop_report_task,
    sync_shop_events_task,
    watch_shop_events_task,
)


load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing shop Bought / Sold events.")
app.add_typer(indexer_app, name="indexer")


def _optional_int(raw: str) -> int | None:
    return int(raw) if raw.strip() else None


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]

    kwargs: dict[str, object] = {}

    sig = inspect.signature(task)
    params = sig.parameters

    if "interval_seconds" in params:
        kwargs["interval_seconds"] = _optional_int(
            inquirer.text(
                message="Sync interval in seconds (empty = SYNC_INTERVAL_SECONDS):",
                default="",
            ).execute()
        )

    if "limit" in params:
        limit = _optional_int(
            inquirer.text(
                message="Recent activity limit (1-100, empty = 15):",
                default="",
            ).execute()
        )
        if limit is not None:
            kwargs["limit"] = limit

    if "csv_path" in params:
        csv_path = inquirer.text(
            message="CSV export path (optional, empty = no export):",
            default="",
        ).execute()
        kwargs["csv_path"] = csv_path.strip() or None

    asyncio.run(task(**kwargs))  # type: ignore


@indexer_app.command("sync")
def sync() -> None:
    """Run a single sync pass (cron / manual trigger)."""
    result = asyncio.run(sync_shop_events_task())
    typer.echo(result.as_dict())


@indexer_app.command("watch")
def watch(
    interval: Optional[int] = typer.Option(None, "--interval", "-i", help="Seconds between passes."),
) -> None:
    """Sync on startup and then periodically."""
    asyncio.run(watch_shop_events_task(interval_seconds=interval))


@indexer_app.command("report")
def report(
    limit: int = typer.Option(15, "--limit", "-n", help="Recent activity rows (1-100)."),
    csv: Optional[str] = typer.Option(None, "--csv", help="Write per-user positions to this CSV file."),
) -> None:
    """Print shop analytics from the local event log."""
    asyncio.run(shop_report_task(limit=limit, csv_path=csv))


if __name__ == "__main__":
    LOGO = r"""
     ____  _                   ___           _
    / ___|| |__   ___  _ __   |_ _|_ __   __| | _____  _____ _ __
    \___ \| '_ \ / _ \| '_ \   | || '_ \ / _` |/ _ \ \/ / _ \ '__|
     ___) | | | | (_) | |_) |  | || | | | (_| |  __/>  <  __/ |
    |____/|_| |_|\___/| .__/  |___|_| |_|\__,_|\___/_/\_\___|_|
                      |_|

      --- Shop Indexer CLI ---
    """
    typer.echo(LOGO)
    app()
