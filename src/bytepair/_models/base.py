"""
Base tokenizer interface for byte-level tokenization implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from math import ceil
from typing import TYPE_CHECKING
import logging

import regex as re

from .._bpe import N_BYTES, apply_merges
from .._decorators import measure_time
from ..errors import (
    InvalidVocabSizeError,
    ModelLoadError,
    SpecialTokenError,
    TokenizationError,
    TrainingError,
    UnknownTokenError,
    VocabularyError,
)
from ..merges import MergeTable
from ..parallel import ParallelMode, resolve_workers
from ..store import MODEL_SUFFIX, VOCAB_SUFFIX, VocabRecord, dumps, loads, render_vocab
from ..strategy import AllowAllStrategy
from ..trainer import BPETrainingResult, train_bpe
from ..types import SpecialTokens, Token, Vocabulary

if TYPE_CHECKING:
    from ..strategy import SpecialTokenStrategy

type Corpus = str | bytes | Sequence[str | bytes]

log = logging.getLogger(__name__)

_DEFAULT_STRATEGY = AllowAllStrategy()


class Tokenizer(ABC):
    """
    Abstract base class for byte-level tokenizers.

    Owns the merge table, special tokens and the derived token -> bytes
    vocabulary, and implements training, decoding and serialization.
    Subclasses decide how non-special text is pre-split into chunks and
    how chunks are encoded.
    """

    TOKENIZER_TYPE: str = "base"

    def __init__(self) -> None:
        """Initialize an untrained tokenizer with the base 256 vocabulary."""
        super().__init__()
        self.merges: MergeTable = MergeTable()
        # regex pattern for splitting text, empty when no splitting happens
        self.pat: str = ""
        self.special_toks: SpecialTokens = {}
        # tokens -> bytes
        self.vocab: Vocabulary = self._build_vocab()
        self._trained = False

    # Training
    # ---------------------------------------------------------------------------

    @abstractmethod
    def _pre_split(self, text: str) -> list[str]:
        """Split a span of non-special text into chunks merges may not cross."""
        ...

    @measure_time
    def train(
        self,
        corpus: Corpus,
        vocab_size: int,
        special_tokens: Sequence[str] | None = None,
        verbose: bool = False,
        show_progress: bool = True,
        num_workers: int = 1,
    ) -> BPETrainingResult:
        """
        Learn merges from ``corpus`` until the vocabulary reaches ``vocab_size``.

        Each document of the corpus is trained as an independent sequence.
        Special tokens are cut out of the corpus first and take the ids right
        after the learned merges, so on success
        ``256 + len(merges) + len(special_tokens) == vocab_size``.

        :param corpus: Text or raw bytes, or a list of documents.
        :param vocab_size: Target vocabulary size including the base 256 bytes
                           and the special tokens.
        :param special_tokens: Literal strings to reserve as special tokens.
        :param verbose: Log each learned merge when ``True``.
        :param show_progress: Display a progress bar while training.
        :param num_workers: Worker threads used to count and rewrite pairs.
        :returns: Training result; ``target_reached`` is ``False`` when the
                  corpus ran out of repeated pairs early.
        :raises InvalidVocabSizeError: If ``vocab_size`` cannot hold the base
                                       bytes plus the special tokens.
        :raises EmptyCorpusError: If the corpus holds no trainable bytes.
        :raises SpecialTokenError: If a special token string is invalid or repeated.
        :raises TokenizationError: If a text document holds a lone surrogate.
        """
        specials = list(special_tokens or [])
        _validate_special_strings(specials)
        if len(set(specials)) != len(specials):
            raise SpecialTokenError(
                "duplicate special tokens",
                found_tokens={seq for seq in specials if specials.count(seq) > 1},
            )

        if vocab_size < N_BYTES:
            raise InvalidVocabSizeError(
                f"vocab size must be at least {N_BYTES}", vocab_size=vocab_size
            )
        n_merges = vocab_size - N_BYTES - len(specials)
        if n_merges < 0:
            raise InvalidVocabSizeError(
                f"vocab size too small for {len(specials)} special tokens",
                vocab_size=vocab_size,
            )

        split_specials = {seq: N_BYTES + idx for idx, seq in enumerate(specials)}
        sequences = (
            self._to_bytes(chunk)
            for doc in _iter_documents(corpus)
            for part in self._segment(doc, split_specials)
            if isinstance(part, str)
            for chunk in self._pre_split(part)
        )

        result = train_bpe(
            sequences,
            n_merges,
            verbose=verbose,
            show_progress=show_progress,
            num_workers=num_workers,
        )

        record = self._record()
        record.merges = result.merges
        record.special_toks = {
            seq: result.merges.next_token + idx for idx, seq in enumerate(specials)
        }
        self._apply_record(record)

        log.info(
            f"trained {self.__class__.__name__}: {len(self.merges)} merges, "
            f"{len(self.special_toks)} special tokens, {len(self.vocab)} total tokens"
        )
        return result

    # Encoding
    # ---------------------------------------------------------------------------

    def encode(
        self,
        text: str,
        strategy: "SpecialTokenStrategy | None" = None,
        num_workers: int | None = None,
    ) -> list[Token]:
        """
        Encode text into a sequence of tokens.

        Registered special tokens found in ``text`` encode to their reserved
        ids. Pass a strategy to restrict or forbid them.

        :raises TrainingError: If the tokenizer has not been trained yet.
        :raises TokenizationError: If ``text`` cannot be encoded as UTF-8,
                                   e.g. it holds a lone surrogate. Use
                                   :meth:`encode_bytes` for raw bytes.
        """
        self._check_trained("encoding")
        _check_encodable(text)
        return self._encode_text(text, strategy, num_workers)

    def encode_bytes(
        self,
        data: bytes,
        strategy: "SpecialTokenStrategy | None" = None,
        num_workers: int | None = None,
    ) -> list[Token]:
        """
        Encode raw bytes, which need not be valid UTF-8.

        Invalid bytes survive the round trip through :meth:`decode_bytes`.
        """
        return self._encode_text(
            data.decode("utf-8", errors="surrogateescape"), strategy, num_workers
        )

    def _encode_text(
        self,
        text: str,
        strategy: "SpecialTokenStrategy | None",
        num_workers: int | None,
    ) -> list[Token]:
        # invalid bytes from encode_bytes arrive here as surrogate escapes
        self._check_trained("encoding")
        specials = (strategy or _DEFAULT_STRATEGY).handle(text, self.special_toks)
        return self._encode_impl(text, specials, num_workers)

    @abstractmethod
    def _encode_impl(
        self, text: str, specials: SpecialTokens, num_workers: int | None
    ) -> list[Token]:
        """Subclass-specific single-text encoding logic."""
        ...

    def encode_batch(
        self,
        texts: list[str],
        strategy: "SpecialTokenStrategy | None" = None,
        num_workers: int | None = None,
        parallel_mode: ParallelMode = ParallelMode.AUTO,
    ) -> list[list[Token]]:
        """
        Encode many texts using the requested parallelization mode.

        ``off`` encodes texts serially. ``chunk`` encodes each text using
        chunk-level parallelism where the tokenizer supports it. ``batch``
        encodes groups of texts on a thread pool. ``auto`` uses chunk mode for
        a single text and batch mode for several.

        :returns: Encoded token sequences in input order.
        """
        self._check_trained("encoding")
        if not texts:
            return []

        workers = resolve_workers(num_workers)

        def process_batch() -> list[list[Token]]:
            """Encode grouped texts in parallel with single-worker chunk encoding."""
            if workers == 1 or len(texts) <= 1:
                return [self.encode(text, strategy, 1) for text in texts]

            # group texts to reduce task-scheduling overhead
            target_tasks = min(len(texts), workers * 2)
            group_size = max(1, ceil(len(texts) / target_tasks))
            text_groups = [
                texts[idx : idx + group_size] for idx in range(0, len(texts), group_size)
            ]

            def encode_group(group: list[str]) -> list[list[Token]]:
                return [self.encode(text, strategy, 1) for text in group]

            with ThreadPoolExecutor(max_workers=workers) as pool:
                encoded_groups = list(pool.map(encode_group, text_groups))
            return [encoded for group in encoded_groups for encoded in group]

        match ParallelMode.get(parallel_mode):
            case ParallelMode.OFF:
                return [self.encode(text, strategy, 1) for text in texts]
            case ParallelMode.CHUNK:
                return [self.encode(text, strategy, workers) for text in texts]
            case ParallelMode.BATCH:
                return process_batch()
            case ParallelMode.AUTO:
                if len(texts) == 1:
                    return [self.encode(texts[0], strategy, workers)]
                return process_batch()

    # Decoding
    # ---------------------------------------------------------------------------

    def decode_bytes(self, tokens: Sequence[Token]) -> bytes:
        """
        Concatenate the byte expansion of every token.

        :raises TrainingError: If the tokenizer has not been trained yet.
        :raises UnknownTokenError: If any token id is not in the vocabulary.
        """
        self._check_trained("decoding")
        parts: list[bytes] = []
        for tok in tokens:
            b = self.vocab.get(tok)
            if b is None:
                raise UnknownTokenError("token not found in vocabulary", invalid_tok=tok)
            parts.append(b)
        return b"".join(parts)

    def decode(self, tokens: Sequence[Token], errors: str = "replace") -> str:
        """
        Decode a sequence of tokens back into text.

        A merge may straddle a multi-byte UTF-8 boundary, so by default
        invalid sequences are replaced with U+FFFD.

        :param errors: How to handle invalid UTF-8: "replace" (default) or "strict".
        :raises UnknownTokenError: If any token id is not in the vocabulary.
        :raises TokenizationError: If ``errors="strict"`` and the bytes are not valid UTF-8.
        """
        txt_bytes = self.decode_bytes(tokens)
        try:
            return txt_bytes.decode("utf-8", errors=errors)
        except UnicodeDecodeError as e:
            raise TokenizationError("decoded bytes are not valid utf-8", position=e.start) from e

    def decode_batch(
        self,
        token_batch: list[list[Token]],
        errors: str = "replace",
        num_workers: int | None = 1,
    ) -> list[str]:
        """Decode many token sequences, optionally on a thread pool."""
        self._check_trained("decoding")
        workers = resolve_workers(num_workers)
        if workers == 1 or len(token_batch) <= 1:
            return [self.decode(tokens, errors) for tokens in token_batch]
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda tokens: self.decode(tokens, errors), token_batch))

    # Vocabulary
    # ---------------------------------------------------------------------------

    def vocab_size(self) -> int:
        """Return the number of tokens in the vocabulary."""
        return len(self.vocab)

    def set_special_tokens(self, special_toks: SpecialTokens) -> None:
        """
        Replace the full set of special tokens with user-assigned IDs.

        To extend existing tokens pass the merged dict:
        ``tok.set_special_tokens({**tok.special_toks, "<|new|>": 300})``.

        :raises TrainingError: If called before training.
        :raises SpecialTokenError: If any two entries share the same ID or a string is invalid.
        :raises VocabularyError: If any ID collides with the BPE vocabulary.
        """
        self._check_trained("setting special tokens")
        _validate_special_strings(special_toks)

        ids = list(special_toks.values())
        if len(ids) != len(set(ids)):
            duplicates = {seq for seq, tok in special_toks.items() if ids.count(tok) > 1}
            raise SpecialTokenError("duplicate token ids", found_tokens=duplicates)

        for tok in ids:
            if tok < self.merges.next_token:
                raise VocabularyError(
                    "special token id overlaps with vocabulary", invalid_tok=tok
                )

        record = self._record()
        record.special_toks = dict(special_toks)
        self.vocab = record.vocab()
        self.special_toks = record.special_toks

    def register_special_tokens(self, special_toks: Sequence[str]) -> SpecialTokens:
        """
        Register additional special tokens with auto-assigned IDs.

        New IDs continue after the highest ID currently in use. Strings that
        are already registered, or repeated in ``special_toks``, get one ID.

        :returns: Mapping of the newly registered tokens to their IDs.
        """
        self._check_trained("registering special tokens")
        next_tok = max(self.vocab) + 1
        fresh = [seq for seq in dict.fromkeys(special_toks) if seq not in self.special_toks]
        new = {seq: next_tok + idx for idx, seq in enumerate(fresh)}
        self.set_special_tokens({**self.special_toks, **new})
        return new

    def _build_vocab(self) -> Vocabulary:
        """Token -> bytes for base bytes, merges (in rank order) and special tokens."""
        return self._record().vocab()

    # Serialization
    # ---------------------------------------------------------------------------

    def save(self, file_prefix: str) -> None:
        """
        Save tokenizer state to disk.

        Creates two files: a .model file with the merges and special tokens,
        and a .vocab file with human-readable token representations.

        :param file_prefix: Path prefix for output files.
        :raises TrainingError: If the tokenizer has not been trained yet.
        """
        self._check_trained("saving")
        log.info(f"saving tokenizer to {file_prefix}")
        record = self._record()

        model_path = Path(file_prefix).with_suffix(MODEL_SUFFIX)
        model_path.parent.mkdir(parents=True, exist_ok=True)
        log.debug(
            f"saving {len(self.special_toks)} special tokens and {len(self.merges)} merge rules"
        )
        model_path.write_text(dumps(record), encoding="utf-8", newline="\n")

        vocab_path = Path(file_prefix).with_suffix(VOCAB_SUFFIX)
        log.debug(f"saving vocab to {vocab_path}")
        vocab_path.write_text(render_vocab(record), encoding="utf-8", newline="\n")

        log.info("tokenizer saved successfully")

    def load(self, model_filename: str) -> None:
        """
        Load tokenizer state from a .model file.

        :param model_filename: Path to the .model file.
        :raises ModelLoadError: If file does not exist, extension is not .model
                                or the stored type differs from this tokenizer.
        :raises MalformedVocabFileError: If the file is structurally invalid.
        """
        path = Path(model_filename)

        if not path.exists():
            raise ModelLoadError("model filepath does not exist", model_path=str(path))

        if path.suffix != MODEL_SUFFIX:
            raise ModelLoadError("expected .model file", model_path=str(path))

        log.info(f"loading model from {path}")
        record = loads(path.read_text(encoding="utf-8"))

        if record.kind != self.TOKENIZER_TYPE:
            raise ModelLoadError(
                "tokenizer type mismatch",
                model_path=str(path),
                type_mismatch=(record.kind, [self.TOKENIZER_TYPE]),
            )
        self._apply_record(record)

        log.info(
            f"model loaded successfully: {len(self.special_toks)} special tokens, "
            f"{len(self.merges)} merge rules, {len(self.vocab)} total tokens"
        )

    def _record(self) -> VocabRecord:
        return VocabRecord(
            kind=self.TOKENIZER_TYPE,
            merges=self.merges,
            pattern=self.pat,
            special_toks=self.special_toks,
        )

    def _apply_record(self, record: VocabRecord) -> None:
        """Replace tokenizer state with a parsed record."""
        # state is replaced only once the new vocab has been built
        vocab = record.vocab()
        self.special_toks = dict(record.special_toks)
        self.merges = record.merges
        self.vocab = vocab
        self._trained = True

    # Helpers
    # ---------------------------------------------------------------------------

    def _check_trained(self, action: str) -> None:
        if not self._trained:
            raise TrainingError(
                f"{self.__class__.__name__} must be trained before {action}"
            )

    @staticmethod
    def _segment(text: str, specials: SpecialTokens) -> list[str | Token]:
        """
        Split ``text`` around literal special token occurrences.

        Returns the non-empty text spans as strings and every special token
        occurrence as its id, in input order. Longer special tokens win
        when two of them overlap.
        """
        if not specials:
            return [text] if text else []
        # escape metachars like "|" and try longer tokens first
        alternatives = sorted(specials, key=len, reverse=True)
        special_pat = "(" + "|".join(re.escape(seq) for seq in alternatives) + ")"
        parts: list[str | Token] = []
        # the capturing group keeps delimiters at odd positions
        for idx, piece in enumerate(re.split(special_pat, text)):
            if idx % 2:
                parts.append(specials[piece])
            elif piece:
                parts.append(piece)
        return parts

    @staticmethod
    def _to_bytes(chunk: str) -> bytes:
        """UTF-8 encode a chunk, restoring raw bytes smuggled in as surrogates."""
        try:
            return chunk.encode("utf-8", errors="surrogateescape")
        except UnicodeEncodeError as e:
            raise TokenizationError(
                "text is not encodable as utf-8", position=e.start, input_text=chunk
            ) from e

    def _apply_bpe(self, chunk: bytes) -> list[Token]:
        """Apply the learned merges to one chunk of raw bytes."""
        return apply_merges(list(chunk), self.merges.ranks)


def _iter_documents(corpus: Corpus) -> Iterator[str]:
    """Yield every corpus document as text, keeping invalid bytes as surrogates."""
    docs = [corpus] if isinstance(corpus, (str, bytes)) else corpus
    for doc in docs:
        if isinstance(doc, bytes):
            yield doc.decode("utf-8", errors="surrogateescape")
        else:
            _check_encodable(doc)
            yield doc


def _check_encodable(text: str) -> None:
    """Reject text holding lone surrogates, which have no UTF-8 encoding."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise TokenizationError(
            "text is not encodable as utf-8", position=e.start, input_text=text
        ) from e


def _validate_special_strings(special_toks: Sequence[str] | SpecialTokens) -> None:
    """Special tokens must be non-empty UTF-8 and fit on one line of a .model file."""
    for seq in special_toks:
        if not seq:
            raise SpecialTokenError("special tokens must not be empty")
        if "\n" in seq or "\r" in seq:
            raise SpecialTokenError(
                "special tokens must not contain line breaks", found_tokens={seq}
            )
        try:
            seq.encode("utf-8")
        except UnicodeEncodeError:
            raise SpecialTokenError(
                "special tokens must be encodable as utf-8", found_tokens={seq}
            ) from None
