# demo_tools/table.py
from typing import List, Sequence

import click

HEADERS = ("Order ID", "Item", "Amount", "Received At")
COL_WIDTHS = (20, 30, 10, 20)


def _fit(text: str, width: int) -> str:
    # one space padding each side, truncate with an ellipsis like cli-table
    inner = width - 2
    if len(text) > inner:
        text = text[: inner - 1] + "…"
    return " " + text.ljust(inner) + " "


class OrdersTable:
    """Append-only table of received orders, redrawn whole on each update."""

    def __init__(self, widths: Sequence[int] = COL_WIDTHS, color: bool = True):
        self.widths = tuple(widths)
        self.color = color
        self.rows: List[tuple] = []

    def __len__(self) -> int:
        return len(self.rows)

    def push(self, order_id, item, amount, received_at: str):
        self.rows.append((str(order_id), str(item), f"${_amount(amount)}", received_at))

    def _rule(self, left: str, mid: str, right: str) -> str:
        return left + mid.join("─" * w for w in self.widths) + right

    def _line(self, cells, header: bool = False) -> str:
        out = []
        for text, w in zip(cells, self.widths):
            cell = _fit(text, w)
            if header and self.color:
                cell = click.style(cell, fg="cyan")
            out.append(cell)
        return "│" + "│".join(out) + "│"

    def render(self) -> str:
        lines = [self._rule("┌", "┬", "┐"), self._line(HEADERS, header=True)]
        for row in self.rows:
            lines.append(self._rule("├", "┼", "┤"))
            lines.append(self._line(row))
        lines.append(self._rule("└", "┴", "┘"))
        return "\n".join(lines)

    __str__ = render


def _amount(v) -> str:
    # 150.0 -> "150", 99.5 -> "99.5"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)
