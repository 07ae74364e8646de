from math import ceil
from typing import Iterable, List, Literal, Optional, Tuple

from db.models import CartItem


def compute_totals(items: Iterable[CartItem], tax_rate: float) -> Tuple[float, float, float]:
    """
    Price a cart.

    Returns (subtotal, tax, total), each rounded to cents. The tax is a flat
    surcharge on the subtotal and the total is what gets charged.
    """
    subtotal = round(sum(item.price * item.quantity for item in items), 2)
    tax = round(subtotal * tax_rate, 2)
    return subtotal, tax, round(subtotal + tax, 2)


def page_count(total: int, page_size: int) -> int:
    """Number of pages needed for `total` rows; never less than 1."""
    return max(ceil(total / max(page_size, 1)), 1)


def format_money(amount: float) -> str:
    return f"${amount:,.2f}"


NEW_CHAT_TITLE = "New Chat"


def truncate_words(text: str, max_words: int) -> str:
    """First `max_words` words of `text`, with "..." appended when cut."""
    words = text.split()
    head = " ".join(words[:max_words])
    return head + "..." if len(words) > max_words else head


def chat_title(first_message: str) -> str:
    """Name a conversation after its opening question."""
    return truncate_words(first_message, 8) or NEW_CHAT_TITLE


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[str]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows; cells are converted with str() and pipes escaped.
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all left ('l').

    Returns:
        str: Markdown formatted table, or "" when there are no rows.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    def cell(value) -> str:
        return str(value).replace("|", "\\|")

    headers = [cell(h) for h in headers]
    rows = [[cell(v) for v in row] for row in rows]

    if aligns is None:
        aligns = ["l"] * len(headers)
    elif len(aligns) != len(headers):
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {"l": ":---", "c": ":---:", "r": "---:"}

    lines = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(align_map[a] for a in aligns) + " |",
    ]
    lines.extend("| " + " | ".join(row) + " |" for row in rows)
    return "\n".join(lines)
