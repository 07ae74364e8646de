from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

import db.crud as crud
from db.models import Product
from db.query import Query
from utils.errors import remote_call

SortOption = Literal["price_asc", "price_desc", "name_asc", "name_desc", "newest"]

# sort key -> (column, ascending)
SORT_COLUMNS: Dict[str, Tuple[str, bool]] = {
    "price_asc": ("price", True),
    "price_desc": ("price", False),
    "name_asc": ("name", True),
    "name_desc": ("name", False),
    "newest": ("created_at", False),
}

SORT_LABELS: Dict[str, str] = {
    "newest": "Newest",
    "price_asc": "Price: Low to High",
    "price_desc": "Price: High to Low",
    "name_asc": "Name: A to Z",
    "name_desc": "Name: Z to A",
}

SEARCH_COLUMNS = ("name", "description", "category")


@dataclass(frozen=True)
class ProductFilters:
    categories: Tuple[str, ...] = ()
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    in_stock_only: bool = False
    search_query: Optional[str] = None


def build_product_query(
    filters: Optional[ProductFilters] = None, sort_by: Optional[SortOption] = None
) -> Query:
    """Translate filter/sort state into a store query."""
    query = Query("products")
    if filters:
        if filters.categories:
            query.in_("category", filters.categories)
        if filters.min_price is not None:
            query.gte("price", filters.min_price)
        if filters.max_price is not None:
            query.lte("price", filters.max_price)
        if filters.in_stock_only:
            query.gt("stock", 0)
        if filters.search_query and filters.search_query.strip():
            query.ilike_any(SEARCH_COLUMNS, filters.search_query)
    if sort_by:
        if sort_by not in SORT_COLUMNS:
            raise ValueError(f"Unknown sort option: {sort_by}")
        column, ascending = SORT_COLUMNS[sort_by]
        query.order(column, ascending)
    # stable order for ties and for the unsorted case
    query.order("id")
    return query


async def fetch_products(
    filters: Optional[ProductFilters] = None, sort_by: Optional[SortOption] = None
) -> List[Product]:
    query = build_product_query(filters, sort_by)
    async with remote_call("load products"):
        return await crud.select_products(query)


async def fetch_product(product_id: int) -> Optional[Product]:
    async with remote_call("load the product"):
        return await crud.get_product(product_id)


async def fetch_categories() -> List[str]:
    async with remote_call("load categories"):
        return await crud.list_categories()


def _matches(product: Product, filters: ProductFilters, categories: Sequence[str]) -> bool:
    if categories and product.category not in categories:
        return False
    if filters.min_price is not None and product.price < filters.min_price:
        return False
    if filters.max_price is not None and product.price > filters.max_price:
        return False
    if filters.in_stock_only and product.stock <= 0:
        return False
    term = (filters.search_query or "").strip().lower()
    if term:
        haystack = (product.name, product.description, product.category or "")
        if not any(term in field.lower() for field in haystack):
            return False
    return True


def filter_products(products: Iterable[Product], filters: ProductFilters) -> List[Product]:
    """
    Apply the same predicates as build_product_query to an already-fetched list.

    Used for search-as-you-type, where answering from the current page is
    preferred over a round trip.
    """
    return [p for p in products if _matches(p, filters, filters.categories)]
