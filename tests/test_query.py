import unittest

import support  # noqa: F401

from db.query import Query, escape_like


class QueryTestCase(unittest.TestCase):
    def test_plain_select(self):
        self.assertEqual(Query("products").to_sql(), ("SELECT * FROM products;", ()))

    def test_predicates_are_anded_in_order(self):
        sql, params = (
            Query("products", ("id", "name"))
            .in_("category", ["Home", "Clothing"])
            .gte("price", 10)
            .lte("price", 50)
            .gt("stock", 0)
            .order("price", ascending=False)
            .order("id")
            .to_sql()
        )
        self.assertEqual(
            sql,
            "SELECT id, name FROM products WHERE category IN (?, ?) AND price >= ?"
            " AND price <= ? AND stock > ? ORDER BY price DESC, id ASC;",
        )
        self.assertEqual(params, ("Home", "Clothing", 10, 50, 0))

    def test_empty_membership_matches_nothing(self):
        sql, params = Query("products").in_("category", []).to_sql()
        self.assertEqual(sql, "SELECT * FROM products WHERE 1 = 0;")
        self.assertEqual(params, ())

    def test_ilike_any_escapes_wildcards(self):
        self.assertEqual(escape_like("50%_off"), "50\\%\\_off")

        sql, params = Query("products").ilike_any(("name", "category"), "  Mug% ").to_sql()
        self.assertIn("unicode_lower(name) LIKE ? ESCAPE '\\'", sql)
        self.assertIn(" OR unicode_lower(category) LIKE ?", sql)
        self.assertEqual(params, ("%mug\\%%", "%mug\\%%"))

    def test_range_and_count(self):
        query = Query("orders").eq("status", "pending").order("id").range(20, 10)
        sql, params = query.to_sql()
        self.assertTrue(sql.endswith("ORDER BY id ASC LIMIT ? OFFSET ?;"))
        self.assertEqual(params, ("pending", 10, 20))

        # counting ignores ordering and range
        self.assertEqual(
            query.count_sql(),
            ("SELECT COUNT(*) FROM orders WHERE status = ?;", ("pending",)),
        )

    def test_rejects_unsafe_identifiers(self):
        with self.assertRaises(ValueError):
            Query("products; DROP TABLE users")
        with self.assertRaises(ValueError):
            Query("products").eq("name = name OR 1", 1)


if __name__ == "__main__":
    unittest.main()
