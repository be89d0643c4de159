"""Thread pool helpers shared by training and batch encoding."""

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from math import ceil
import os
from typing import TYPE_CHECKING, Literal

from .errors import StrategyError
from .types import Token

if TYPE_CHECKING:
    from ._models.base import Tokenizer
    from .strategy import SpecialTokenStrategy

ParallelStrategy = Literal["auto", "batch", "chunk", "off"]


class ParallelMode(str, Enum):
    """Named parallelization modes for batch encoding."""

    AUTO = "auto"
    BATCH = "batch"
    CHUNK = "chunk"
    OFF = "off"

    @classmethod
    def get(cls, name: "str | ParallelMode") -> "ParallelMode":
        """Get parallel mode by name (case-insensitive)."""
        if isinstance(name, ParallelMode):
            return name
        try:
            return cls[name.upper()]
        except KeyError:
            raise StrategyError(
                "unknown parallel mode",
                invalid_name=name,
                available=[mode.value for mode in cls],
            )


def list_parallel_modes() -> list[str]:
    """Return available parallel mode names."""
    return [mode.value for mode in ParallelMode]


def resolve_workers(num_workers: int | None) -> int:
    """Turn a user supplied worker count into a positive integer."""
    if num_workers is None:
        return os.cpu_count() or 1
    # "0" interpreted as 1 worker
    return max(1, num_workers)


def split_shards[T](items: Sequence[T], n_shards: int) -> list[Sequence[T]]:
    """Split ``items`` into at most ``n_shards`` contiguous, order preserving shards."""
    if not items:
        return []
    size = max(1, ceil(len(items) / max(1, n_shards)))
    return [items[idx : idx + size] for idx in range(0, len(items), size)]


def map_shards[T, R](
    fn: Callable[[Sequence[T]], R],
    items: Sequence[T],
    workers: int,
    pool: ThreadPoolExecutor | None = None,
) -> list[R]:
    """
    Apply ``fn`` to each shard of ``items`` and return results in shard order.

    Runs inline when there is a single worker or a single shard.
    """
    shards = split_shards(items, workers)
    if workers == 1 or len(shards) <= 1:
        return [fn(shard) for shard in shards]
    if pool is not None:
        return list(pool.map(fn, shards))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(fn, shards))


def encode_batch(
    tokenizer: "Tokenizer",
    texts: list[str],
    strategy: "SpecialTokenStrategy | None" = None,
    num_workers: int | None = None,
    parallel_mode: ParallelStrategy = "auto",
) -> list[list[Token]]:
    """Encode many texts with a parallel mode given by name."""
    return tokenizer.encode_batch(
        texts,
        strategy=strategy,
        num_workers=num_workers,
        parallel_mode=ParallelMode.get(parallel_mode),
    )


__all__ = [
    "ParallelStrategy",
    "ParallelMode",
    "list_parallel_modes",
    "resolve_workers",
    "split_shards",
    "map_shards",
    "encode_batch",
]
