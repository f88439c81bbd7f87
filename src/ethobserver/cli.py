import asyncio, logging, signal
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from .adapters.notifications_jsonl import JSONLNotificationSink
from .adapters.rpc_httpx import HttpxRPC
from .application.config import Erc20Config, ObserverConfig
from .application.export import NotificationExporter
from .application.observer import SUBSCRIPTION_KINDS, Observer, SubscriptionKind
from .application.retry import RetryPolicy
from .application.utils import to_notification
from .application.watch_list import WatchList
from .domain import address as addr
from .domain.models import NotificationRec

console = Console()

_STYLE = {"pending": "yellow", "confirmation": "cyan", "success": "green"}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


def _print_rec(rec: NotificationRec, required: int) -> None:
    style = _STYLE.get(rec.event, "white")
    line = f"[{style}]{rec.event:<12}[/] {rec.stream:<6} {rec.key}"
    if rec.confirmations is not None:
        line += f"  {rec.confirmations}/{required}"
    p = rec.payload
    if rec.stream == "token":
        line += f"  [dim]{p.get('token')} {p.get('from_address')} → {p.get('to_address')} amount={p.get('amount')}[/]"
    else:
        line += f"  [dim]{p.get('from_address')} → {p.get('to_address')} value={p.get('value')}[/]"
    console.print(line)


@click.group()
def cli():
    """ethobserver — watch addresses for transactions and ERC20 transfers until they are final."""


@cli.command("watch")
@click.option("--rpc", required=True, envvar="ETHOBSERVER_RPC_URL", help="RPC endpoint URL")
@click.option("--address", "addresses", multiple=True, required=True, help="Address to watch; repeat for more")
@click.option("--confirmations", type=int, default=12, show_default=True, help="Native tx confirmations required")
@click.option("--erc20-confirmations", type=int, default=12, show_default=True, help="Token transfer confirmations required")
@click.option("--erc20-cache-size", type=int, default=512, show_default=True, help="Transfer dedup cache size")
@click.option("--blocks-cache-size", type=int, default=64, show_default=True, help="Block numbers remembered by the feed")
@click.option("--poll-interval", type=float, default=2.0, show_default=True, help="Seconds between head polls")
@click.option("--max-attempts", type=int, default=20, show_default=True, help="Retry budget per operation; 0 retries forever")
@click.option("--from-block", type=int, default=None, help="First block to process (default: current head)")
@click.option("--jsonl-out", type=str, default="", help="Optional path to append notifications (NDJSON)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              default="INFO", show_default=True)
def watch_cmd(rpc, addresses, confirmations, erc20_confirmations, erc20_cache_size, blocks_cache_size,
              poll_interval, max_attempts, from_block, jsonl_out, log_level):
    """Watch addresses and print every pending/confirmation/success notification."""
    _configure_logging(log_level)
    try:
        watch_list = WatchList(addresses)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--address")

    config = ObserverConfig(
        confirmations_required=confirmations,
        erc20=Erc20Config(confirmations_required=erc20_confirmations, cache_size=erc20_cache_size),
        blocks_cache_size=blocks_cache_size,
        poll_interval_s=poll_interval,
        retry=RetryPolicy(max_attempts=max_attempts or None),
    )
    required = {"native": config.confirmations_required, "token": config.erc20.confirmations_required}

    async def run():
        client = HttpxRPC(rpc)
        exporter = NotificationExporter(JSONLNotificationSink(jsonl_out)) if jsonl_out else None
        observer = Observer(client, config, watch_list, start_block=from_block)

        def handler_for(kind: SubscriptionKind):
            def handle(payload, *rest):
                rec = to_notification(kind.stream, kind.event, payload, rest[0] if rest else None)
                _print_rec(rec, required[kind.stream])
                if exporter is not None:
                    exporter.submit(rec)
            return handle

        for kind in SUBSCRIPTION_KINDS:
            k = SubscriptionKind.parse(kind)
            observer.subscribe(k, handler_for(k))
        observer.on_error(lambda err: console.print(f"[bold red]gave up[/]: {err}"))

        if exporter is not None:
            exporter.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, observer.stop)
            except NotImplementedError:
                pass

        console.print(Panel.fit(
            "\n".join(watch_list) + f"\n\nnative ≥{required['native']} • erc20 ≥{required['token']} confirmations",
            title="watching", border_style="bold"))
        try:
            await observer.run()
        finally:
            if exporter is not None:
                await exporter.close()
            await client.aclose()

    try:
        asyncio.run(run())
    except RuntimeError as e:
        raise click.ClickException(str(e))


@cli.command("to-int")
@click.argument("address")
def to_int_cmd(address):
    """Print the integer value of ADDRESS."""
    try:
        console.print(addr.to_int(address))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="ADDRESS")


@cli.command("to-address")
@click.argument("value")
def to_address_cmd(value):
    """Print the canonical address for VALUE (decimal or 0x-hex)."""
    try:
        console.print(addr.to_address(int(value, 0)))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="VALUE")


if __name__ == "__main__":
    cli()
