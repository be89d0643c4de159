"""Basic byte-level tokenizer implementation."""

from typing import override
import logging

from .base import Tokenizer
from ..types import SpecialTokens, Token

log = logging.getLogger(__name__)


class BasicTokenizer(Tokenizer):
    """
    Tokenizer that operates directly on byte sequences without regex splitting.

    Merges may span word, whitespace and punctuation boundaries; only
    document and special token boundaries are respected.
    """

    TOKENIZER_TYPE = "basic"

    @override
    def _pre_split(self, text: str) -> list[str]:
        return [text]

    @override
    def _encode_impl(
        self, text: str, specials: SpecialTokens, num_workers: int | None
    ) -> list[Token]:
        """
        Encode text into tokens using byte-level BPE.

        ``num_workers`` is ignored: merges can span arbitrary byte boundaries
        inside a single text, so it is not split for parallel work.
        """
        _ = num_workers
        tokens: list[Token] = []
        for part in self._segment(text, specials):
            if isinstance(part, str):
                tokens.extend(self._apply_bpe(self._to_bytes(part)))
            else:
                tokens.append(part)
        return tokens
