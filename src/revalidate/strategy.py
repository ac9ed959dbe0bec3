"""Refetch strategies for stale data."""

from enum import Enum


class RefetchStrategy(Enum):
    """How a query client treats stale data."""

    ALWAYS_FETCH = "always_fetch"  # ignore cached data
    STALE_WHILE_REVALIDATE = "stale_while_revalidate"
    STALE_ONLY = "stale_only"  # show stale data, no automatic refetch
    FETCH_IF_EMPTY = "fetch_if_empty"
    CACHE_ONLY = "cache_only"  # never refetch

    @property
    def requires_immediate_fetch(self) -> bool:
        return self is RefetchStrategy.ALWAYS_FETCH

    @property
    def allows_stale_data(self) -> bool:
        return self in (
            RefetchStrategy.STALE_WHILE_REVALIDATE,
            RefetchStrategy.STALE_ONLY,
            RefetchStrategy.CACHE_ONLY,
        )

    @property
    def triggers_background_revalidation(self) -> bool:
        return self is RefetchStrategy.STALE_WHILE_REVALIDATE
