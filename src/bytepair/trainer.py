"""Standalone BPE training module."""

from collections import Counter
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging

from tqdm import tqdm

from ._bpe import N_BYTES, bpe_freqs, bpe_merge, select_pair
from ._progress import _is_enabled
from .errors import EmptyCorpusError, InvalidVocabSizeError
from .merges import MergeTable
from .parallel import map_shards
from .types import Token, TokenPair, Vocabulary

log = logging.getLogger(__name__)

# a pair must occur at least this often to be merged
MIN_PAIR_FREQ = 2

type _Entry = tuple[list[Token], int]


@dataclass
class BPETrainingResult:
    """Results from one BPE training run."""

    merges: MergeTable
    n_merges_requested: int
    n_merges_completed: int

    @property
    def target_reached(self) -> bool:
        """``False`` when training ran out of repeated pairs before the target."""
        return self.n_merges_completed == self.n_merges_requested

    @property
    def vocab(self) -> Vocabulary:
        return self.merges.vocab()


def _count_shard(shard: Sequence[_Entry]) -> Counter[TokenPair]:
    """Count weighted pair frequencies inside one shard of sequences."""
    counts: Counter[TokenPair] = Counter()
    for tokens, weight in shard:
        bpe_freqs(tokens, weight, counts)
    return counts


def _rewrite_shard(
    shard: Sequence[_Entry], pair: TokenPair, new_tok: Token
) -> list[_Entry]:
    """Replace ``pair`` with ``new_tok`` in every sequence of one shard."""
    return [
        (bpe_merge(tokens, pair, new_tok) if len(tokens) > 1 else tokens, weight)
        for tokens, weight in shard
    ]


def _fold_sequences(sequences: Iterable[Sequence[Token]]) -> list[_Entry]:
    """Collapse identical sequences into ``(tokens, weight)`` entries, first seen first."""
    weights: Counter[tuple[Token, ...]] = Counter(
        tuple(seq) for seq in sequences if len(seq) > 0
    )
    return [(list(seq), weight) for seq, weight in weights.items()]


def train_bpe(
    sequences: Iterable[Sequence[Token]],
    n_merges: int,
    verbose: bool = False,
    show_progress: bool = True,
    num_workers: int = 1,
) -> BPETrainingResult:
    """
    Learn up to ``n_merges`` merges from independent token sequences.

    Each step counts every adjacent pair inside each sequence (never across
    sequences), selects the most frequent pair (ties go to the numerically
    smallest pair) and rewrites every sequence with the new token. Training
    stops early once no pair occurs at least twice.

    Counting and rewriting are split into shards and run on a thread pool
    when ``num_workers > 1``; pair selection always happens on the calling
    thread once all shard counts have been summed.

    :param sequences: Token sequences, typically raw bytes of documents or
                      pre-split chunks.
    :param n_merges: Maximum number of merge operations to perform.
    :param verbose: Log each learned merge when ``True``.
    :param show_progress: Display a progress bar during training when ``True``.
    :param num_workers: Worker threads for the count and rewrite phases.
    :returns: Training output with the merge table and completed merge count.
    :raises InvalidVocabSizeError: If ``n_merges`` is negative.
    :raises EmptyCorpusError: If ``sequences`` holds no tokens.
    """
    if n_merges < 0:
        raise InvalidVocabSizeError(
            "number of merges must not be negative", vocab_size=N_BYTES + n_merges
        )

    entries = _fold_sequences(sequences)
    if not entries:
        raise EmptyCorpusError("empty corpus, no training performed")

    workers = max(1, num_workers)
    log.debug(
        f"training on {len(entries)} unique sequences "
        f"({sum(len(t) * w for t, w in entries)} tokens) with {workers} worker(s)"
    )

    pairs: list[TokenPair] = []
    pool = ThreadPoolExecutor(max_workers=workers) if workers > 1 else None
    progress = tqdm(
        total=n_merges,
        desc="training",
        unit="merge",
        disable=not (show_progress and _is_enabled()),
    )
    try:
        while len(pairs) < n_merges:
            # count phase: per shard counters reduced by summation
            counts: Counter[TokenPair] = Counter()
            for shard_counts in map_shards(_count_shard, entries, workers, pool):
                counts.update(shard_counts)

            # select phase
            selected = select_pair(counts)
            if selected is None or selected[1] < MIN_PAIR_FREQ:
                break
            pair, freq = selected
            new_tok = N_BYTES + len(pairs)
            pairs.append(pair)

            # rewrite phase
            entries = [
                entry
                for shard in map_shards(
                    lambda shard: _rewrite_shard(shard, pair, new_tok),
                    entries,
                    workers,
                    pool,
                )
                for entry in shard
            ]

            progress.update(1)
            if verbose:
                log.info(
                    "merge %d/%d: %s -> %d (%d occurrences)",
                    len(pairs),
                    n_merges,
                    pair,
                    new_tok,
                    freq,
                )
    finally:
        progress.close()
        if pool is not None:
            pool.shutdown()

    result = BPETrainingResult(
        merges=MergeTable(pairs),
        n_merges_requested=n_merges,
        n_merges_completed=len(pairs),
    )
    if not result.target_reached:
        log.warning(
            f"no more repeated byte pairs to merge after {result.n_merges_completed} merges "
            f"(requested {n_merges}) stopping early"
        )
    return result


__all__ = ["BPETrainingResult", "MIN_PAIR_FREQ", "train_bpe"]
