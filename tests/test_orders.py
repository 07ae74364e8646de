import unittest

from support import StoreTestCase

from db import crud
from db.models import OrderItem
from services.orders import build_order_query, change_order_status, fetch_orders
from utils.errors import AuthorizationError, ValidationError


class AdminOrdersTestCase(StoreTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.admin = self.new_state()
        self.admin.session.login(await self.open_session("admin@example.com", admin=True))

        self.alice = await self.register("alice@example.com")
        self.bob = await self.register("bob@example.com")
        self.order_ids = []
        for uid, qty in ((self.alice, 1), (self.bob, 2), (self.alice, 3)):
            order = await crud.place_order(
                uid,
                [OrderItem(product_id=4, quantity=qty, unit_price=15.0, total_price=15.0 * qty)],
                15.0 * qty,
                1.5 * qty,
                16.5 * qty,
            )
            self.order_ids.append(order.id)

    async def test_requires_admin(self):
        anonymous = self.new_state()
        with self.assertRaises(AuthorizationError):
            await fetch_orders(anonymous.session)

        shopper = self.new_state()
        shopper.session.login(await self.open_session("shopper@example.com"))
        with self.assertRaises(AuthorizationError) as ctx:
            await fetch_orders(shopper.session)
        self.assertEqual(ctx.exception.description, "Only administrators can manage orders.")
        with self.assertRaises(AuthorizationError):
            await change_order_status(shopper.session, self.order_ids[0], "shipped")
        self.assertEqual((await crud.get_order(self.order_ids[0])).status, "pending")

    async def test_listing_search_filter_and_sort(self):
        page = await fetch_orders(self.admin.session)
        self.assertEqual(page.total, 3)
        self.assertEqual([o.id for o in page.orders], list(reversed(self.order_ids)))

        page = await fetch_orders(self.admin.session, search="ALICE@")
        self.assertEqual({o.user_email for o in page.orders}, {"alice@example.com"})
        self.assertEqual(page.total, 2)

        page = await fetch_orders(self.admin.session, search=str(self.order_ids[1]))
        self.assertEqual([o.id for o in page.orders], [self.order_ids[1]])

        page = await fetch_orders(self.admin.session, sort_by="total_asc")
        self.assertEqual([o.total for o in page.orders], [16.5, 33.0, 49.5])

        await crud.update_order_status(self.order_ids[2], "processing")
        page = await fetch_orders(self.admin.session, status="processing")
        self.assertEqual([o.id for o in page.orders], [self.order_ids[2]])
        page = await fetch_orders(self.admin.session, status="all")
        self.assertEqual(page.total, 3)

        # non-ascii digits are not order numbers, they fall back to a text match
        page = await fetch_orders(self.admin.session, search="²")
        self.assertEqual((page.total, page.orders), (0, []))
        sql, params = build_order_query(search="٣").to_sql()
        self.assertNotIn("id = ?", sql)
        self.assertEqual(params[0], "%٣%")

        with self.assertRaises(ValidationError):
            build_order_query(status="lost")
        with self.assertRaises(ValidationError):
            build_order_query(sort_by="random")

    async def test_pagination_clamps_to_last_page(self):
        page = await fetch_orders(self.admin.session, sort_by="oldest", page=2, page_size=2)
        self.assertEqual(page.page_count, 2)
        self.assertEqual(page.page, 2)
        self.assertEqual([o.id for o in page.orders], [self.order_ids[2]])

        page = await fetch_orders(self.admin.session, sort_by="oldest", page=9, page_size=2)
        self.assertEqual(page.page, 2)
        self.assertEqual(len(page.orders), 1)

        page = await fetch_orders(self.admin.session, search="nobody", page=3, page_size=2)
        self.assertEqual((page.page, page.page_count, page.orders), (1, 1, []))

    async def test_status_update_touches_only_that_order(self):
        target = self.order_ids[1]
        updated = await change_order_status(self.admin.session, target, "shipped")
        self.assertEqual(updated.id, target)
        self.assertEqual(updated.status, "shipped")

        for order_id in self.order_ids:
            expected = "shipped" if order_id == target else "pending"
            self.assertEqual((await crud.get_order(order_id)).status, expected)

        with self.assertRaises(ValidationError):
            await change_order_status(self.admin.session, target, "teleported")
        with self.assertRaises(ValidationError):
            await change_order_status(self.admin.session, 9999, "shipped")


if __name__ == "__main__":
    unittest.main()
