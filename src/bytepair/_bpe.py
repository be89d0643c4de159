"""
Core Byte Pair Encoding (BPE) operations.
"""

from collections import Counter
from collections.abc import Mapping, Sequence

from .types import Token, TokenPair, Vocabulary

N_BYTES = 256


def base_vocab() -> Vocabulary:
    """Return the fixed mapping of the 256 single-byte tokens."""
    return {btok: bytes([btok]) for btok in range(N_BYTES)}


def bpe_freqs(
    tokens: Sequence[Token],
    weight: int = 1,
    counter: Counter[TokenPair] | None = None,
) -> Counter[TokenPair]:
    """
    Count every consecutive token pair in ``tokens``.

    Overlapping pairs are all counted, e.g. ``aaa`` holds ``(a, a)`` twice.

    :param tokens: Token sequence to analyse.
    :param weight: Amount added per occurrence, used when ``tokens`` stands
                   for several identical sequences.
    :param counter: Existing counter to update in place.
    :returns: The updated (or a fresh) counter.
    """
    if counter is None:
        counter = Counter()
    for pair in zip(tokens, tokens[1:]):
        counter[pair] += weight
    return counter


def bpe_merge(
    tokens: Sequence[Token], target: TokenPair, new_tok: Token
) -> list[Token]:
    """
    Merge all occurrences of a target token pair into a single new token.

    Occurrences are replaced left to right without overlap, so ``aaa`` with
    target ``(a, a)`` becomes ``[new, a]``.

    Note: merged tokens may represent partial UTF-8 sequences. Use
    ``errors="replace"`` when decoding to handle invalid sequences gracefully.
    """
    newtoks: list[Token] = []

    i = 0
    n = len(tokens)
    while i < n:
        if i < n - 1 and tokens[i] == target[0] and tokens[i + 1] == target[1]:
            newtoks.append(new_tok)
            i += 2
        else:
            newtoks.append(tokens[i])
            i += 1

    return newtoks


def select_pair(counts: Mapping[TokenPair, int]) -> tuple[TokenPair, int] | None:
    """
    Pick the most frequent pair, breaking ties with the numerically smallest pair.

    :returns: ``(pair, frequency)`` or ``None`` when ``counts`` is empty.
    """
    if not counts:
        return None
    # highest count first, then lexicographically smallest (left, right)
    pair = min(counts, key=lambda bp: (-counts[bp], bp))
    return pair, counts[pair]


def apply_merges(
    tokens: list[Token], ranks: Mapping[TokenPair, int], n_base: int = N_BYTES
) -> list[Token]:
    """
    Apply ranked merges to a token sequence.

    :param tokens: List of tokens (initially bytes 0-255).
    :param ranks: Byte pair -> merge rank, lower rank merges first.
    :param n_base: Id of the rank 0 merge.
    :returns: Compressed token sequence after applying learned merges.
    """
    while len(tokens) >= 2:
        # only the lowest ranked pair matters, not how often it occurs.
        # see: https://github.com/karpathy/minbpe/issues/87#issuecomment-2273349030
        bigrams = set(zip(tokens, tokens[1:]))
        pair: TokenPair = min(
            bigrams,
            key=lambda bp: ranks.get(bp, float("inf")),
        )
        rank = ranks.get(pair)
        if rank is None:
            break
        tokens = bpe_merge(tokens, pair, n_base + rank)

    return tokens
