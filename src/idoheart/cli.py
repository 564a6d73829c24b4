"""Command-line interface for the IDoHeart SDK."""

import asyncio
from contextlib import contextmanager
from typing import Annotated, Awaitable, Callable, Generator, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from idoheart.exceptions import IDoHeartError
from idoheart.logging_config import get_logger, setup_logging
from idoheart.models import ReceivedCodeState, Referral, format_timestamp
from idoheart.settings import Settings
from idoheart.store import ReferralStore

logger = get_logger(__name__)

T = TypeVar("T")

# Create Typer app
app = typer.Typer(
    name="idoheart",
    help="IDoHeart - issue, redeem and verify referral codes",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _open_store() -> ReferralStore:
    settings = Settings()
    setup_logging(settings)
    return ReferralStore.from_settings(settings)


@contextmanager
def _offline_store() -> Generator[ReferralStore, None, None]:
    """Open the store for local-only commands and close its HTTP client."""
    store = _open_store()
    try:
        yield store
    finally:
        asyncio.run(store.client.close())


def _run(store: ReferralStore, action: Callable[[], Awaitable[T]]) -> T:
    """Run an async store/client action and close the client afterwards."""

    async def runner() -> T:
        try:
            return await action()
        finally:
            await store.client.close()

    try:
        return asyncio.run(runner())
    except IDoHeartError as e:
        console.print(f"[bold red]✗[/bold red] {e.message}")
        raise typer.Exit(code=1)


def _referral_table(title: str, referrals: tuple[Referral, ...] | list[Referral]) -> Table:
    table = Table(title=title)
    table.add_column("Code", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Created At")
    table.add_column("Used At")

    for referral in referrals:
        table.add_row(
            referral.code,
            str(referral.used_count),
            format_timestamp(referral.created_at),
            format_timestamp(referral.used_at) if referral.used_at else "-",
        )
    return table


@app.command("generate")
def generate() -> None:
    """Create a new referral code and keep it locally."""
    store = _open_store()
    referral = _run(store, store.generate_referral)

    console.print(f"[bold green]✓[/bold green] Referral created: [bold]{referral.code}[/bold]")
    console.print(f"  Reference: {referral.referral_ref_id}")


@app.command("check")
def check(
    code: Annotated[str, typer.Argument(help="Referral code to check")],
) -> None:
    """Look up a referral code on the server."""
    store = _open_store()
    referral = _run(store, lambda: store.client.check_code(code))
    console.print(_referral_table("Referral", [referral]))


@app.command("use")
def use(
    code: Annotated[str, typer.Argument(help="Referral code to redeem")],
) -> None:
    """Redeem a received referral code."""
    store = _open_store()
    result = _run(store, lambda: store.redeem_received_code(code))

    if result.success:
        console.print(f"[bold green]✓[/bold green] Code {code} redeemed (used {result.used_count}x)")
    else:
        console.print(f"[yellow]Code {code} was not redeemed[/yellow]")
        raise typer.Exit(code=1)


@app.command("sync")
def sync(
    preserve_unconfirmed: Annotated[
        bool,
        typer.Option("--preserve-unconfirmed", help="Keep local referrals whose check failed for reasons other than 404"),
    ] = False,
) -> None:
    """Reconcile local referrals with the server."""
    store = _open_store()
    _run(store, lambda: store.reconcile_sent_referrals(preserve_unconfirmed=preserve_unconfirmed))

    console.print(
        f"[bold green]✓[/bold green] {len(store.sent_referrals)} referrals synced, "
        f"{store.used_referrals_count} redemptions"
    )


@app.command("status")
def status() -> None:
    """Show locally stored referral state."""
    with _offline_store() as store:
        if store.sent_referrals:
            console.print(_referral_table("Sent Referrals", store.sent_referrals))
        else:
            console.print("[yellow]No referrals sent[/yellow]")
        console.print(f"Used referrals: {len(store.used_referrals)}")
        console.print(f"Redemptions: {store.used_referrals_count}")

        received = store.received_code
        if received is None:
            console.print("Received code: none")
        else:
            console.print(
                f"Received code: [bold]{received.code}[/bold] "
                f"({received.state.value}, {format_timestamp(received.timestamp)})"
            )


@app.command("receive")
def receive(
    code: Annotated[str, typer.Argument(help="Code from the referral link")],
    state: Annotated[
        ReceivedCodeState,
        typer.Option("--state", "-s", help="State to record"),
    ] = ReceivedCodeState.INSTALLED,
) -> None:
    """Record a code received through a referral link."""
    with _offline_store() as store:
        saved = store.save_received_code(code, state)

    if saved:
        console.print(f"[bold green]✓[/bold green] Received code {code} saved as {state.value}")
    else:
        console.print(f"[yellow]Received code {code} not saved[/yellow]")
        raise typer.Exit(code=1)


@app.command("reset-received")
def reset_received() -> None:
    """Forget the received code (debug mode only)."""
    with _offline_store() as store:
        try:
            store.reset_received_code()
        except IDoHeartError as e:
            console.print(f"[bold red]✗[/bold red] {e.message}")
            raise typer.Exit(code=1)
    console.print("[bold green]✓[/bold green] Received code reset")


if __name__ == "__main__":
    app()
