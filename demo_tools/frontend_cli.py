"""
Real-time order feed viewer
===========================
Connects to the order WebSocket (JWT-authenticated or public) and redraws a
table of every order received.
"""
from __future__ import annotations
import asyncio, datetime as dt, logging, os, signal
from typing import Callable, Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

import click
import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from orderfeed.auth import TOKEN_MAX_AGE, create_token
from orderfeed.config import FrontendConfig, load_frontend_config
from orderfeed.schemas import Order
from demo_tools.table import OrdersTable

log = logging.getLogger("frontend")

TITLE = "📦 Real-Time Order Updates Demo"


def _with_query(url: str, **params) -> str:
    params = {k: v for k, v in params.items() if v}
    if not params:
        return url
    sep = "&" if "?" in url else "?"
    return url + sep + urlencode(params)


def public_ws_url(ws_url: str) -> str:
    """``.../ws`` -> ``.../ws/public``; only the path suffix is touched."""
    parts = urlsplit(ws_url)
    path = parts.path.rstrip("/")
    if not path.endswith("/ws"):
        log.warning("WS_URL path %r does not end in /ws, using it unchanged for the public feed", parts.path)
        return ws_url
    return urlunsplit(parts._replace(path=path + "/public"))


def build_ws_url(cfg: FrontendConfig, mode: str, channel: Optional[str] = None,
                 token: Optional[str] = None) -> str:
    if mode == "public":
        return _with_query(public_ws_url(cfg.ws_url), channel=channel)
    if token is None:
        token = create_token(cfg.user_id, cfg.jwt_secret)
    return _with_query(cfg.ws_url, token=token, channel=channel)


class OrderFeed:
    """Per-frame handler: parse, append, redraw."""

    def __init__(self, table: Optional[OrdersTable] = None, echo: Callable = click.echo,
                 clear: Callable = click.clear, clock: Callable[[], dt.datetime] = dt.datetime.now):
        self.table = table if table is not None else OrdersTable()
        self.echo = echo
        self.clear = clear
        self.clock = clock

    def on_open(self):
        self.echo(click.style("✅ Connected to WebSocket server", fg="green"))
        self.echo(click.style("Waiting for order updates...\n", fg="bright_black"))

    def on_error(self, err: BaseException):
        log.error("WebSocket error: %s", err)
        self.echo(click.style("WebSocket error: ", fg="red") + str(err), err=True)

    def on_close(self):
        self.echo(click.style("WebSocket connection closed", fg="yellow"))

    def handle_message(self, raw) -> Optional[Order]:
        try:
            order = Order.model_validate_json(raw)
        except ValidationError as e:
            log.error("Error parsing message: %s", e)
            self.echo(click.style("Error parsing message: ", fg="red") + str(raw)[:200], err=True)
            return None

        now = self.clock()
        self.table.push(order.id, order.item, order.amount, now.strftime("%H:%M:%S"))
        self.redraw(now)
        return order

    def redraw(self, now: dt.datetime):
        self.clear()
        self.echo(click.style(TITLE, fg="green", bold=True))
        self.echo(click.style(f"Connected - {now.strftime('%Y-%m-%d %H:%M:%S')}\n", fg="bright_black"))
        self.echo(self.table.render())
        self.echo(click.style(f"\nTotal orders received: {len(self.table)}", fg="bright_black"))


async def listen(url: str, feed: OrderFeed, connect=websockets.connect) -> None:
    """Consume frames until the server closes or the connection fails."""
    try:
        async with connect(url) as ws:
            feed.on_open()
            async for raw in ws:
                feed.handle_message(raw)
    except (OSError, WebSocketException) as e:
        feed.on_error(e)
    feed.on_close()


def _report_listener_failure(task: asyncio.Task) -> None:
    if task.cancelled() or task.exception() is None:
        return
    log.error("Listener stopped unexpectedly", exc_info=task.exception())
    click.echo(click.style("Listener failed: ", fg="red") + str(task.exception())
               + " (press Ctrl+C to exit)", err=True)


async def run(url: str, feed: OrderFeed) -> None:
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
        handled = True
    except (NotImplementedError, RuntimeError):
        # no loop signal handlers on this platform; Ctrl+C raises KeyboardInterrupt instead
        handled = False

    task = asyncio.create_task(listen(url, feed))
    task.add_done_callback(_report_listener_failure)
    try:
        await stop.wait()
    finally:
        if handled:
            loop.remove_signal_handler(signal.SIGINT)
        feed.echo(click.style("\nShutting down...", fg="yellow"))
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


@click.command()
@click.option("--mode", type=click.Choice(["auth", "public"]), default=None,
              help="Connection mode; prompts when omitted")
@click.option("--channel", default=None, help="Logical channel to subscribe to")
@click.option("--env-file", type=click.Path(dir_okay=False), default=None,
              help="Path to a .env file (default: search from the working directory)")
def main(mode: Optional[str], channel: Optional[str], env_file: Optional[str]):
    """Watch the order feed as a live table."""
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_frontend_config(env_file)

    click.clear()
    click.echo(click.style(TITLE, fg="green", bold=True))
    click.echo(click.style("Connecting to WebSocket server...\n", fg="bright_black"))

    if mode is None:
        click.echo("1) Authenticated (private channel) - requires JWT token")
        click.echo("2) Public (no auth)")
        ans = click.prompt("Choose connection mode (1=auth, 2=public)", default="1")
        mode = "public" if ans.strip() == "2" else "auth"

    token = None
    if mode == "auth":
        token = create_token(cfg.user_id, cfg.jwt_secret)
        log.info("Token for %s expires in %ds", cfg.user_id, TOKEN_MAX_AGE)
    url = build_ws_url(cfg, mode, channel, token=token)

    try:
        asyncio.run(run(url, OrderFeed()))
    except KeyboardInterrupt:
        # run() already reported the shutdown
        log.debug("interrupted")


if __name__ == "__main__":
    main()
