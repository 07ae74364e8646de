import unittest

import support  # noqa: F401

from db.models import CartItem
from utils.pure import (
    chat_title,
    compute_totals,
    format_money,
    generate_markdown_table,
    page_count,
    truncate_words,
)


class PureTestCase(unittest.TestCase):
    def test_compute_totals(self):
        items = [CartItem(product_id=1, name="A", price=10.0, quantity=2)]
        self.assertEqual(compute_totals(items, 0.10), (20.0, 2.0, 22.0))

        items = [
            CartItem(product_id=1, name="Mouse", price=24.99, quantity=3),
            CartItem(product_id=2, name="Mug", price=9.99, quantity=1),
        ]
        subtotal, tax, total = compute_totals(items, 0.10)
        self.assertEqual(subtotal, 84.96)
        self.assertEqual(tax, 8.5)
        self.assertEqual(total, 93.46)

        self.assertEqual(compute_totals([], 0.10), (0, 0, 0))

    def test_page_count(self):
        self.assertEqual(page_count(0, 10), 1)
        self.assertEqual(page_count(10, 10), 1)
        self.assertEqual(page_count(11, 10), 2)
        self.assertEqual(page_count(5, 0), 5)

    def test_format_money(self):
        self.assertEqual(format_money(1234.5), "$1,234.50")
        self.assertEqual(format_money(0), "$0.00")

    def test_chat_titles(self):
        self.assertEqual(chat_title("  Do you ship   to Canada? "), "Do you ship to Canada?")
        self.assertEqual(
            chat_title("one two three four five six seven eight nine"),
            "one two three four five six seven eight...",
        )
        self.assertEqual(chat_title("   "), "New Chat")
        self.assertEqual(truncate_words("Do you ship to Canada?", 3), "Do you ship...")
        self.assertEqual(truncate_words("Returns", 3), "Returns")

    def test_generate_markdown_table(self):
        md = generate_markdown_table(["Name", "Qty"], [["Mug | large", 2]], ["l", "r"])
        self.assertEqual(
            md.splitlines(),
            ["| Name | Qty |", "| :--- | ---: |", "| Mug \\| large | 2 |"],
        )

        # first row doubles as header
        md = generate_markdown_table(None, [["Email", "a@b.c"], ["Role", "admin"]])
        self.assertEqual(md.splitlines()[0], "| Email | a@b.c |")

        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])


if __name__ == "__main__":
    unittest.main()
