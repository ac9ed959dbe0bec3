"""Hooks invoked around QueryClient operations."""

from __future__ import annotations

from typing import Any

from revalidate.types import QueryResult


class QueryMiddleware:
    """Base class for QueryClient middleware.

    Override only the hooks you need; the defaults do nothing. A client calls
    the hooks of all installed middleware in registration order.
    """

    def before_query(self, key: str) -> None:
        """Called before a query starts."""

    def after_query(self, key: str, result: QueryResult[Any]) -> None:
        """Called with the result a query returns."""

    def on_query_exception(self, key: str, error: BaseException) -> None:
        """Called when a query raises instead of returning (e.g. cancellation)."""

    def on_invalidate(self, key: str) -> None:
        """Called before a key is invalidated."""

    def on_watch(self, key: str) -> None:
        """Called whenever a key's state channel is requested."""

    def on_dispose(self) -> None:
        """Called before the client releases its resources."""


__all__ = ["QueryMiddleware"]
