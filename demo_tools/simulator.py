"""
Backend order simulator
=======================
Interactive CLI that publishes synthetic orders to the order service,
signed with the time-window ``X-API-Token``.
"""
from __future__ import annotations
import enum, logging, os, random, time
from typing import Callable, List, Optional, Sequence, Tuple

import click
import httpx

from orderfeed.config import SimulatorConfig, load_simulator_config
from orderfeed.schemas import Order, SendResult
from orderfeed.timetoken import InvalidConfiguration, current_token

log = logging.getLogger("simulator")

ITEMS = [
    "Laptop Computer", "Smartphone", "Headphones", "Coffee Maker",
    "Desk Chair", "Wireless Mouse", "External Hard Drive", "Webcam",
    "Keyboard", "Monitor", "Tablet", "Smart Watch",
]
DEFAULT_CHANNEL = "default"


def _now_ms() -> int:
    return int(time.time() * 1000)


def generate_random_order(rng: random.Random = random) -> Order:
    return Order(
        id=f"order-{_now_ms()}-{rng.randrange(1000)}",
        item=rng.choice(ITEMS),
        amount=rng.randrange(1000) + 50,
    )


def _error_detail(e: httpx.HTTPError):
    # body of a non-2xx response if there is one, else the exception message
    if isinstance(e, httpx.HTTPStatusError):
        try:
            return e.response.json()
        except ValueError:
            return e.response.text or str(e)
    return str(e) or e.__class__.__name__


class OrderPublisher:
    """Posts orders to the private (/update) or public (/publish) endpoint."""

    def __init__(self, cfg: SimulatorConfig, transport: Optional[httpx.BaseTransport] = None,
                 clock: Callable[[], float] = time.time):
        self.cfg = cfg
        self._clock = clock
        self._client = httpx.Client(timeout=cfg.request_timeout, transport=transport)

    def token(self) -> str:
        return current_token(self.cfg.time_token_secret, self.cfg.time_window, clock=self._clock)

    def url_for(self, private: bool, channel_name: Optional[str]) -> str:
        base = self.cfg.api_url if private else self.cfg.publish_url
        if private and not channel_name:
            return base
        return str(httpx.URL(base).copy_merge_params({"channel": channel_name or DEFAULT_CHANNEL}))

    def send(self, order: Order, channel_name: Optional[str] = None, private: bool = True) -> SendResult:
        url = self.url_for(private, channel_name)
        headers = {"Content-Type": "application/json", "X-API-Token": self.token()}
        try:
            resp = self._client.post(url, json=order.model_dump(), headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            log.info("POST %s failed: %s", url, e)
            return SendResult(success=False, error=_error_detail(e))

        try:
            data = resp.json() if resp.content else None
        except ValueError:
            data = resp.text
        return SendResult(success=True, data=data)

    def close(self) -> None:
        self._client.close()

    def __enter__(self): return self
    def __exit__(self, exc_type, exc, tb): self.close()


# ----- interactive menu -----
class MenuState(enum.Enum):
    MENU = "menu"
    ACTION = "action"
    CONTINUE = "continue"
    EXIT = "exit"


ACTIONS: List[Tuple[str, str]] = [
    ("Send single order", "single"),
    ("Send multiple orders", "multiple"),
    ("Send random order", "random"),
    ("Exit", "exit"),
]
CHANNELS: List[Tuple[str, str]] = [
    ("Private (backend) - requires time token", "private"),
    ("Public - no authentication", "public"),
]


class Menu:
    """ShowMenu -> PerformAction -> Continue | Exit, as a flat loop."""

    def __init__(self, cfg: SimulatorConfig, publisher: OrderPublisher,
                 prompt: Callable = click.prompt, echo: Callable = click.echo,
                 clear: Callable = click.clear, sleep: Callable[[float], None] = time.sleep,
                 rng: random.Random = random):
        self.cfg = cfg
        self.publisher = publisher
        self.prompt = prompt
        self.echo = echo
        self.clear = clear
        self.sleep = sleep
        self.rng = rng

    def run(self) -> None:
        state, action = MenuState.MENU, None
        while state is not MenuState.EXIT:
            if state is MenuState.MENU:
                action = self.show_menu()
                state = MenuState.EXIT if action == "exit" else MenuState.ACTION
            elif state is MenuState.ACTION:
                self.perform(action)
                state = MenuState.CONTINUE
            elif state is MenuState.CONTINUE:
                self.wait_for_input()
                state = MenuState.MENU
        self.echo(click.style("Goodbye!", fg="yellow"))

    def choose(self, message: str, choices: Sequence[Tuple[str, str]], default: int = 1) -> str:
        for i, (label, _) in enumerate(choices, 1):
            self.echo(f"  {i}) {label}")
        n = self.prompt(message, type=click.IntRange(1, len(choices)), default=default)
        return choices[n - 1][1]

    def show_menu(self) -> str:
        self.clear()
        self.echo(click.style("🛒 Backend Order Simulator", fg="blue", bold=True))
        self.echo(click.style("Microservice URL: ", fg="bright_black") + self.cfg.api_url)
        self.echo(click.style("Time Token Secret: ", fg="bright_black")
                  + self.cfg.time_token_secret[:10] + "...")
        self.echo("")
        return self.choose("Select an action", ACTIONS)

    def perform(self, action: str) -> None:
        private = self.choose("Select channel to publish to", CHANNELS) == "private"
        channel_name = self.prompt("Channel name to publish to", default=DEFAULT_CHANNEL)

        if action == "single":
            order = Order(
                id=self.prompt("Order ID", default=f"order-{_now_ms()}"),
                item=self.prompt("Item", default="Test Product"),
                amount=self.prompt("Amount", type=float, default=100),
            )
            self.report(self.publisher.send(order, channel_name, private), "✅ Order sent successfully!")
        elif action == "multiple":
            count = self.prompt("How many orders to send?", type=click.IntRange(min=1), default=5)
            self.send_batch(count, channel_name, private)
        elif action == "random":
            order = generate_random_order(self.rng)
            self.echo(click.style("Generated order: ", fg="blue") + order.model_dump_json())
            self.report(self.publisher.send(order, channel_name, private), "✅ Random order sent successfully!")

    def send_batch(self, count: int, channel_name: str, private: bool) -> List[SendResult]:
        self.echo(click.style(f"Sending {count} orders...", fg="blue"))
        results = []
        for i in range(1, count + 1):
            order = generate_random_order(self.rng)
            result = self.publisher.send(order, channel_name, private)
            progress = click.style(f"[{i}/{count}]", fg="bright_black")
            if result.success:
                self.echo(f"{progress} " + click.style(f"Order {order.id} sent", fg="green"))
            else:
                self.echo(f"{progress} " + click.style(f"Failed: {result.error}", fg="red"))
            results.append(result)
            self.sleep(self.cfg.batch_delay)
        return results

    def report(self, result: SendResult, ok_message: str) -> None:
        if result.success:
            self.echo(click.style(ok_message, fg="green"))
        else:
            self.echo(click.style("❌ Failed to send order: ", fg="red") + str(result.error))

    def wait_for_input(self) -> None:
        self.echo("")
        self.prompt("Press Enter to continue...", default="", show_default=False)


@click.command()
@click.option("--env-file", type=click.Path(dir_okay=False), default=None,
              help="Path to a .env file (default: search from the working directory)")
def main(env_file: Optional[str]):
    """Publish demo orders to the order service."""
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper(),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    cfg = load_simulator_config(env_file)
    try:
        current_token(cfg.time_token_secret, cfg.time_window)
    except InvalidConfiguration as e:
        raise click.ClickException(f"TIME_WINDOW_SECONDS: {e}")

    with OrderPublisher(cfg) as publisher:
        Menu(cfg, publisher).run()


if __name__ == "__main__":
    main()
