"""Regex-based byte-level tokenizer implementation."""

from collections.abc import Sequence
from typing import override
import logging

import regex as re

from .base import Tokenizer
from ..errors import TokenizationError
from ..parallel import map_shards, resolve_workers
from ..pattern import DEFAULT_PATTERN, TokenPattern, compile_pattern
from ..store import VocabRecord
from ..types import SpecialTokens, Token

log = logging.getLogger(__name__)


class RegexTokenizer(Tokenizer):
    """
    Tokenizer that splits text using a regex pattern before applying BPE.

    Words, numbers, punctuation runs and whitespace runs become separate
    chunks and merges never cross a chunk boundary, neither during training
    nor while encoding.
    """

    TOKENIZER_TYPE = "regex"

    def __init__(self, pattern: str | None = None) -> None:
        """
        Initialize tokenizer with a split pattern.

        :param pattern: Built-in pattern name (e.g. "gpt4") or a raw regex
                        string. Defaults to the GPT-4 pattern.
        :raises PatternError: If the pattern does not compile.
        """
        super().__init__()
        self._set_pattern(_resolve_pattern(pattern or DEFAULT_PATTERN))

    def _set_pattern(self, pattern: str) -> None:
        self.compiled_pat: re.Pattern[str] = compile_pattern(pattern)
        self.pat = pattern

    @override
    def _pre_split(self, text: str) -> list[str]:
        # group(0): findall would return inner groups for patterns that have them
        return [m.group(0) for m in self.compiled_pat.finditer(text)]

    @override
    def _encode_impl(
        self, text: str, specials: SpecialTokens, num_workers: int | None
    ) -> list[Token]:
        """
        Encode special tokens as their ids and every pattern chunk independently.

        Chunks of all non-special spans are encoded together, on a thread
        pool when ``num_workers`` allows, and reassembled in input order.
        """
        # running accumulation of the full encoding; None marks a span
        # whose chunks are filled in after bpe
        out_parts: list[list[Token] | None] = []
        chunks: list[bytes] = []
        # (position in out_parts, number of chunks) for every text span
        spans: list[tuple[int, int]] = []

        for part in self._segment(text, specials):
            if isinstance(part, str):
                span_chunks = [self._to_bytes(c) for c in self._pre_split(part)]
                spans.append((len(out_parts), len(span_chunks)))
                chunks.extend(span_chunks)
                out_parts.append(None)
            else:
                out_parts.append([part])

        encoded = self._apply_bpe_chunks(chunks, num_workers)

        start = 0
        for pos, n_chunks in spans:
            span_tokens: list[Token] = []
            for chunk_toks in encoded[start : start + n_chunks]:
                span_tokens.extend(chunk_toks)
            out_parts[pos] = span_tokens
            start += n_chunks
        if start != len(encoded):
            raise TokenizationError("chunk count mismatch while reassembling encoding")

        tokens: list[Token] = []
        for part_toks in out_parts:
            if part_toks is not None:
                tokens.extend(part_toks)
        return tokens

    def _apply_bpe_chunks(
        self, chunks: list[bytes], num_workers: int | None
    ) -> list[list[Token]]:
        """Apply merges to every chunk, reusing results for repeated chunks."""

        def encode_shard(shard: Sequence[bytes]) -> list[list[Token]]:
            cache: dict[bytes, list[Token]] = {}
            out = []
            for chunk in shard:
                if chunk not in cache:
                    cache[chunk] = self._apply_bpe(chunk)
                out.append(cache[chunk])
            return out

        workers = 1 if num_workers is None else resolve_workers(num_workers)
        return [
            toks for shard in map_shards(encode_shard, chunks, workers) for toks in shard
        ]

    @override
    def _apply_record(self, record: VocabRecord) -> None:
        self._set_pattern(record.pattern or TokenPattern.get(DEFAULT_PATTERN))
        super()._apply_record(record)


def _resolve_pattern(pattern: str) -> str:
    """Map a built-in pattern name to its regex; anything else is taken as a regex."""
    if TokenPattern.name_of(pattern) is not None:
        return pattern
    if pattern.upper().replace("-", "_") in TokenPattern.__members__:
        return TokenPattern.get(pattern)
    return pattern
