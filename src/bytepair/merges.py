"""Ordered table of learned byte pair merges."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
import logging

from ._bpe import N_BYTES, base_vocab
from .errors import VocabularyError
from .types import Token, TokenPair, Vocabulary

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Merge:
    """A single merge rule: ``pair`` collapses into ``new_tok``."""

    pair: TokenPair
    new_tok: Token
    rank: int


class MergeTable:
    """
    Immutable, ordered sequence of merges.

    The merge at position ``rank`` produces token ``256 + rank`` and may only
    reference tokens that already exist before it. Lookups by pair go
    through a ``pair -> rank`` mapping.

    Example:
       >>> table = MergeTable([(97, 97), (97, 98), (256, 257)])
       >>> table.rank((97, 98))
       1
       >>> table.vocab()[258]
       b'aaab'
    """

    __slots__ = ("_pairs", "_ranks")

    def __init__(self, pairs: Iterable[TokenPair] = ()) -> None:
        """
        Build a table from pairs given in training order.

        :raises VocabularyError: If a pair references a token that does not
                                 exist yet or appears more than once.
        """
        self._pairs: tuple[TokenPair, ...] = tuple(
            (int(left), int(right)) for left, right in pairs
        )
        self._ranks: dict[TokenPair, int] = {}
        for rank, pair in enumerate(self._pairs):
            new_tok = N_BYTES + rank
            for tok in pair:
                if not 0 <= tok < new_tok:
                    raise VocabularyError(
                        f"merge {rank} references a token that does not exist yet",
                        invalid_tok=tok,
                    )
            if pair in self._ranks:
                raise VocabularyError(f"duplicate merge pair {pair} at rank {rank}")
            self._ranks[pair] = rank

    @classmethod
    def from_encoding(cls, merges: dict[TokenPair, Token]) -> "MergeTable":
        """Build a table from a ``pair -> merged token`` dict."""
        return cls(pair for pair, _ in sorted(merges.items(), key=lambda x: x[1]))

    def __len__(self) -> int:
        return len(self._pairs)

    def __iter__(self) -> Iterator[Merge]:
        for rank, pair in enumerate(self._pairs):
            yield Merge(pair, N_BYTES + rank, rank)

    def __getitem__(self, rank: int) -> Merge:
        pair = self._pairs[rank]
        rank = rank if rank >= 0 else len(self._pairs) + rank
        return Merge(pair, N_BYTES + rank, rank)

    def __contains__(self, pair: object) -> bool:
        return pair in self._ranks

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MergeTable):
            return NotImplemented
        return self._pairs == other._pairs

    def __hash__(self) -> int:
        return hash(self._pairs)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({len(self._pairs)} merges)"

    @property
    def pairs(self) -> tuple[TokenPair, ...]:
        """Merge pairs in rank order."""
        return self._pairs

    @property
    def ranks(self) -> dict[TokenPair, int]:
        """Pair -> rank mapping used for priority lookups while encoding."""
        return self._ranks

    @property
    def next_token(self) -> Token:
        """First id past the byte and merge range."""
        return N_BYTES + len(self._pairs)

    def rank(self, pair: TokenPair) -> int | None:
        """Return the rank of ``pair`` or ``None`` if it was never learned."""
        return self._ranks.get(pair)

    def token(self, pair: TokenPair) -> Token | None:
        """Return the token ``pair`` merges into or ``None``."""
        rank = self._ranks.get(pair)
        return None if rank is None else N_BYTES + rank

    def as_encoding(self) -> dict[TokenPair, Token]:
        """Return the table as a ``pair -> merged token`` dict."""
        return {pair: N_BYTES + rank for pair, rank in self._ranks.items()}

    def vocab(self) -> Vocabulary:
        """
        Expand every token into its byte sequence.

        Merges are replayed in rank order so both children of a merge are
        always expanded before the merge itself.
        """
        vocab = base_vocab()
        for merge in self:
            left, right = merge.pair
            vocab[merge.new_tok] = vocab[left] + vocab[right]
        log.debug(f"expanded {len(self)} merges into {len(vocab)} tokens")
        return vocab
