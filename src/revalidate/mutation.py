"""Mutation helper - run a side-effecting operation and track its state."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

TData = TypeVar("TData")
TVariables = TypeVar("TVariables")


class MutationInProgressError(RuntimeError):
    """Raised when mutate() is called while a previous call is still running."""


@dataclass(frozen=True, slots=True)
class MutationState(Generic[TData]):
    """Snapshot of a mutation's progress."""

    is_loading: bool = False
    data: TData | None = None
    error: BaseException | None = None

    @property
    def has_data(self) -> bool:
        return self.data is not None

    @property
    def has_error(self) -> bool:
        return self.error is not None


class Mutation(Generic[TData, TVariables]):
    """Runs fn one call at a time and invokes callbacks on completion.

    It does not touch any cache by itself; write results back from the
    callbacks, e.g. with QueryClient.set_query_data or invalidate_query.

    Usage:
        save = Mutation(
            api.save_todo,
            on_success=lambda todo, _: client.set_query_data("todos", todo),
        )
        await save.mutate(new_todo)
    """

    def __init__(
        self,
        fn: Callable[[TVariables], Awaitable[TData]],
        *,
        on_success: Callable[[TData, TVariables], Any] | None = None,
        on_error: Callable[[BaseException, TVariables], Any] | None = None,
        on_settled: Callable[[TData | None, BaseException | None, TVariables], Any]
        | None = None,
    ) -> None:
        self._fn = fn
        self._on_success = on_success
        self._on_error = on_error
        self._on_settled = on_settled
        self._state: MutationState[TData] = MutationState()

    @property
    def state(self) -> MutationState[TData]:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    async def mutate(self, variables: TVariables) -> TData:
        """Run the mutation, record its outcome and return its result.

        Raises:
            MutationInProgressError: a previous call has not finished yet
        """
        if self._state.is_loading:
            raise MutationInProgressError("Mutation is already in progress")

        self._state = MutationState(is_loading=True, data=self._state.data)
        try:
            data = await self._fn(variables)
        except Exception as e:
            self._state = MutationState(is_loading=False, error=e)
            if self._on_error is not None:
                self._on_error(e, variables)
            if self._on_settled is not None:
                self._on_settled(None, e, variables)
            raise
        except BaseException:
            self._state = MutationState(is_loading=False, data=self._state.data)
            raise

        self._state = MutationState(is_loading=False, data=data)
        if self._on_success is not None:
            self._on_success(data, variables)
        if self._on_settled is not None:
            self._on_settled(data, None, variables)
        return data

    def reset(self) -> None:
        """Forget the last outcome. Has no effect while a call is running."""
        if not self._state.is_loading:
            self._state = MutationState()


__all__ = ["Mutation", "MutationInProgressError", "MutationState"]
