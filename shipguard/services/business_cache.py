"""Cache helpers for catalog, customer, dashboard and report reads.

Every helper goes through one :class:`CacheManager` so keys stay inside
their namespace (``products``, ``customers``, ``dashboard``, ``reports``)
and invalidation patterns match what the setters wrote.
"""

from __future__ import annotations

import logging
from typing import Any

from shipguard.core.cache import CacheManager

logger = logging.getLogger(__name__)

PRODUCTS = "products"
CUSTOMERS = "customers"
DASHBOARD = "dashboard"
REPORTS = "reports"

LIST_TTL = 300
ITEM_TTL = 600
DASHBOARD_STATS_TTL = 180
DASHBOARD_CHARTS_TTL = 300
REPORT_TTL = 600


class BusinessCache:
    """Typed accessors over a shared cache manager."""

    def __init__(self, cache: CacheManager) -> None:
        self.cache = cache

    # Products
    def product_list(self, user_id: int, page: int = 1, limit: int = 10) -> Any:
        return self.cache.get(f"list:{user_id}:{page}:{limit}", prefix=PRODUCTS)

    def set_product_list(self, user_id: int, page: int, limit: int, data: Any) -> bool:
        return self.cache.set(f"list:{user_id}:{page}:{limit}", data, ttl=LIST_TTL, prefix=PRODUCTS)

    def product(self, product_id: str) -> Any:
        return self.cache.get(f"item:{product_id}", prefix=PRODUCTS)

    def set_product(self, product_id: str, data: Any) -> bool:
        return self.cache.set(f"item:{product_id}", data, ttl=ITEM_TTL, prefix=PRODUCTS)

    def invalidate_user_products(self, user_id: int) -> int:
        return self.cache.delete_pattern(f"list:{user_id}:*", prefix=PRODUCTS)

    # Customers
    def customer_list(self, user_id: int, page: int = 1) -> Any:
        return self.cache.get(f"list:{user_id}:{page}", prefix=CUSTOMERS)

    def set_customer_list(self, user_id: int, page: int, data: Any) -> bool:
        return self.cache.set(f"list:{user_id}:{page}", data, ttl=LIST_TTL, prefix=CUSTOMERS)

    def customer(self, customer_id: str) -> Any:
        return self.cache.get(f"item:{customer_id}", prefix=CUSTOMERS)

    def set_customer(self, customer_id: str, data: Any) -> bool:
        return self.cache.set(f"item:{customer_id}", data, ttl=ITEM_TTL, prefix=CUSTOMERS)

    # Dashboard
    def dashboard_stats(self, user_id: int) -> Any:
        return self.cache.get(f"stats:{user_id}", prefix=DASHBOARD)

    def set_dashboard_stats(self, user_id: int, data: Any) -> bool:
        return self.cache.set(f"stats:{user_id}", data, ttl=DASHBOARD_STATS_TTL, prefix=DASHBOARD)

    def dashboard_charts(self, user_id: int, period: str) -> Any:
        return self.cache.get(f"charts:{user_id}:{period}", prefix=DASHBOARD)

    def set_dashboard_charts(self, user_id: int, period: str, data: Any) -> bool:
        return self.cache.set(
            f"charts:{user_id}:{period}", data, ttl=DASHBOARD_CHARTS_TTL, prefix=DASHBOARD
        )

    # Reports
    def report(self, user_id: int, report_type: str, filters: str) -> Any:
        return self.cache.get(f"data:{user_id}:{report_type}:{filters}", prefix=REPORTS)

    def set_report(self, user_id: int, report_type: str, filters: str, data: Any) -> bool:
        return self.cache.set(
            f"data:{user_id}:{report_type}:{filters}", data, ttl=REPORT_TTL, prefix=REPORTS
        )

    # Invalidation
    def invalidate_product(self, product_id: str, user_id: int) -> int:
        """Drop a product plus the lists and dashboard data derived from it."""

        removed = int(self.cache.delete(f"item:{product_id}", prefix=PRODUCTS))
        removed += self.invalidate_user_products(user_id)
        removed += int(self.cache.delete(f"stats:{user_id}", prefix=DASHBOARD))
        removed += self.cache.delete_pattern(f"charts:{user_id}:*", prefix=DASHBOARD)
        logger.info("cache.invalidate", extra={"entity": "product", "removed": removed})
        return removed

    def invalidate_customer(self, customer_id: str, user_id: int) -> int:
        removed = int(self.cache.delete(f"item:{customer_id}", prefix=CUSTOMERS))
        removed += self.cache.delete_pattern(f"list:{user_id}:*", prefix=CUSTOMERS)
        removed += int(self.cache.delete(f"stats:{user_id}", prefix=DASHBOARD))
        logger.info("cache.invalidate", extra={"entity": "customer", "removed": removed})
        return removed

    def invalidate_shipment(self, user_id: int) -> int:
        """A shipment changes stock, so dashboards and reports go stale."""

        removed = int(self.cache.delete(f"stats:{user_id}", prefix=DASHBOARD))
        removed += self.cache.delete_pattern(f"charts:{user_id}:*", prefix=DASHBOARD)
        removed += self.cache.delete_pattern(f"data:{user_id}:*", prefix=REPORTS)
        logger.info("cache.invalidate", extra={"entity": "shipment", "removed": removed})
        return removed

    def invalidate_user(self, user_id: int) -> int:
        removed = self.invalidate_user_products(user_id)
        removed += self.cache.delete_pattern(f"list:{user_id}:*", prefix=CUSTOMERS)
        removed += int(self.cache.delete(f"stats:{user_id}", prefix=DASHBOARD))
        removed += self.cache.delete_pattern(f"charts:{user_id}:*", prefix=DASHBOARD)
        removed += self.cache.delete_pattern(f"data:{user_id}:*", prefix=REPORTS)
        logger.info("cache.invalidate", extra={"entity": "user", "removed": removed})
        return removed
