"""Order-preserving bounded concurrency over ``ThreadPoolExecutor``.

Batch categorization and bulk learning issue one store round-trip per item.
``p_map`` runs those calls with at most ``concurrency`` in flight and returns
results in input order.

- ``stop_on_error=True`` (default) re-raises the first failure and cancels
  work that has not started.
- ``stop_on_error=False`` waits for everything and raises an
  ``ExceptionGroup`` of all failures.
- Mappers may return ``p_map_skip`` to drop an item from the output.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

InT = TypeVar("InT")
OutT = TypeVar("OutT")


class _Skip:
    __slots__ = ()

    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "p_map_skip"


p_map_skip: object = _Skip()


def p_map(
    iterable: Iterable[InT],
    mapper: Callable[[InT], OutT | object],
    *,
    concurrency: int,
    stop_on_error: bool = True,
) -> list[OutT]:
    if not isinstance(concurrency, int) or concurrency < 1:
        raise ValueError("concurrency must be a positive integer")

    items = list(iterable)
    if not items:
        return []

    results: list[OutT | object] = [p_map_skip] * len(items)
    errors: list[Exception] = []
    pending = iter(enumerate(items))

    with ThreadPoolExecutor(max_workers=min(concurrency, len(items))) as pool:
        in_flight: dict[Future, int] = {}

        def _top_up() -> None:
            while len(in_flight) < concurrency:
                nxt = next(pending, None)
                if nxt is None:
                    return
                idx, item = nxt
                in_flight[pool.submit(mapper, item)] = idx

        _top_up()
        while in_flight:
            done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
            for fut in done:
                idx = in_flight.pop(fut)
                try:
                    results[idx] = fut.result()
                except Exception as e:  # noqa: BLE001
                    if stop_on_error:
                        for other in in_flight:
                            other.cancel()
                        raise
                    errors.append(e)
            _top_up()

    if errors:
        raise ExceptionGroup("p_map: one or more mapper calls failed", errors)

    return [r for r in results if r is not p_map_skip]  # type: ignore[misc]


__all__ = ["p_map", "p_map_skip"]
