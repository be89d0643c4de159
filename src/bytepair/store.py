"""
Persisted vocabulary record: serialization of merges, pattern and special tokens.

A ``.model`` file looks like::

    bytepair 1
    type regex
    re <split pattern, empty for basic tokenizers>
    ---
    <number of special tokens>
    <special token string> <id>
    ---
    <left> <right>

Merge lines are written in training order, so the rank of a merge is its
position among the merge lines and its token is ``256 + rank``.
"""

from dataclasses import dataclass, field
from typing import Final
import logging

from ._bpe import N_BYTES
from ._sanitise import render_bytes
from .errors import MalformedVocabFileError, PatternError
from .merges import MergeTable
from .types import SpecialTokens, TokenPair, Vocabulary

PREFIX: Final[str] = "bytepair"
FORMAT_VERSION: Final[str] = "1"
MODEL_SUFFIX: Final[str] = ".model"
VOCAB_SUFFIX: Final[str] = ".vocab"
SECTION_MARKER: Final[str] = "---"
TOKENIZER_TYPES: Final[tuple[str, ...]] = ("basic", "regex")

log = logging.getLogger(__name__)


@dataclass
class VocabRecord:
    """Everything needed to rebuild a trained tokenizer."""

    kind: str
    merges: MergeTable
    pattern: str = ""
    special_toks: SpecialTokens = field(default_factory=dict)

    def vocab(self) -> Vocabulary:
        """Token -> bytes for merges and special tokens."""
        vocab = self.merges.vocab()
        for seq, tok in self.special_toks.items():
            vocab[tok] = seq.encode("utf-8")
        return vocab


def dumps(record: VocabRecord) -> str:
    """Serialize a record into the ``.model`` text format."""
    if "\n" in record.pattern or "\r" in record.pattern:
        raise PatternError(
            "split pattern must fit on a single line to be saved",
            pattern=record.pattern,
        )
    lines = [
        f"{PREFIX} {FORMAT_VERSION}",
        f"type {record.kind}",
        f"re {record.pattern}",
        SECTION_MARKER,
        str(len(record.special_toks)),
    ]
    # stable order: by token id
    for seq, tok in sorted(record.special_toks.items(), key=lambda x: x[1]):
        lines.append(f"{seq} {tok}")
    lines.append(SECTION_MARKER)
    for left, right in record.merges.pairs:
        lines.append(f"{left} {right}")
    return "\n".join(lines) + "\n"


def _expect(lines: list[str], idx: int, what: str) -> str:
    if idx >= len(lines):
        raise MalformedVocabFileError(f"unexpected end of file, expected {what}", line_no=idx + 1)
    return lines[idx]


def _split_lines(text: str) -> list[str]:
    """
    Split on ``\\n`` (or ``\\r\\n``) only.

    ``str.splitlines`` also breaks on characters such as ``\\x0c`` or
    ``\\u2028``, which may appear inside a special token or a split pattern.
    """
    lines = [line.removesuffix("\r") for line in text.split("\n")]
    if lines[-1] == "":
        lines.pop()
    return lines


def read_kind(text: str) -> str:
    """Parse only the header of a ``.model`` text and return the tokenizer type."""
    lines = _split_lines(text)
    header = _expect(lines, 0, "header")
    if header != f"{PREFIX} {FORMAT_VERSION}":
        parts = header.split(" ")
        if len(parts) == 2 and parts[0] == PREFIX:
            raise MalformedVocabFileError(
                f"unsupported format version {parts[1]!r} (expected {FORMAT_VERSION})",
                line_no=1,
            )
        raise MalformedVocabFileError(f"invalid header: {header!r}", line_no=1)

    type_line = _expect(lines, 1, "tokenizer type")
    if not type_line.startswith("type "):
        raise MalformedVocabFileError(f"expected tokenizer type, got {type_line!r}", line_no=2)
    kind = type_line[5:].strip()
    if kind not in TOKENIZER_TYPES:
        raise MalformedVocabFileError(f"unknown tokenizer type {kind!r}", line_no=2)
    return kind


def loads(text: str) -> VocabRecord:
    """
    Parse the ``.model`` text format.

    :raises MalformedVocabFileError: If the text is structurally invalid.
    """
    kind = read_kind(text)
    lines = _split_lines(text)

    re_line = _expect(lines, 2, "split pattern")
    if not (re_line == "re" or re_line.startswith("re ")):
        raise MalformedVocabFileError(f"expected split pattern, got {re_line!r}", line_no=3)
    pattern = re_line[3:]

    if _expect(lines, 3, SECTION_MARKER) != SECTION_MARKER:
        raise MalformedVocabFileError(
            f"start sequence marker missing: (expected ---) (got {lines[3]})", line_no=4
        )

    raw_count = _expect(lines, 4, "special token count").strip()
    try:
        n_special = int(raw_count)
        if n_special < 0:
            raise ValueError()
    except ValueError:
        raise MalformedVocabFileError(f"invalid special token count: {raw_count}", line_no=5)

    special_toks: SpecialTokens = {}
    for idx in range(5, 5 + n_special):
        line = _expect(lines, idx, "special token mapping")
        # split from the right: the token string may contain whitespace
        parts = line.rsplit(" ", maxsplit=1)
        if len(parts) != 2 or not parts[0]:
            raise MalformedVocabFileError(
                f"special token mapping must be '<string> <id>': {line!r}", line_no=idx + 1
            )
        seq, raw_tok = parts
        try:
            tok = int(raw_tok)
        except ValueError:
            raise MalformedVocabFileError(f"token is not a number: {raw_tok}", line_no=idx + 1)
        if seq in special_toks:
            raise MalformedVocabFileError(f"duplicate special token {seq!r}", line_no=idx + 1)
        if tok in special_toks.values():
            raise MalformedVocabFileError(f"duplicate special token id {tok}", line_no=idx + 1)
        special_toks[seq] = tok
    idx = 5 + n_special

    end_marker = _expect(lines, idx, SECTION_MARKER)
    if end_marker != SECTION_MARKER:
        raise MalformedVocabFileError(
            f"end sequence marker missing: (expected ---) (got {end_marker})", line_no=idx + 1
        )

    pairs: list[TokenPair] = []
    seen: set[TokenPair] = set()
    for line_no, line in enumerate(lines[idx + 1 :], start=idx + 2):
        fields = line.split()
        if len(fields) != 2:
            raise MalformedVocabFileError(
                f"merge must be exactly two token ids: {line!r}", line_no=line_no
            )
        try:
            left, right = int(fields[0]), int(fields[1])
        except ValueError:
            raise MalformedVocabFileError(f"invalid merge format: {line!r}", line_no=line_no)
        new_tok = N_BYTES + len(pairs)
        if not (0 <= left < new_tok and 0 <= right < new_tok):
            raise MalformedVocabFileError(
                f"merge {left} {right} references a token not yet defined (< {new_tok})",
                line_no=line_no,
            )
        if (left, right) in seen:
            raise MalformedVocabFileError(f"duplicate merge {left} {right}", line_no=line_no)
        seen.add((left, right))
        pairs.append((left, right))

    merges = MergeTable(pairs)
    for seq, tok in special_toks.items():
        if tok < merges.next_token:
            raise MalformedVocabFileError(
                f"special token {seq!r} id {tok} overlaps the byte/merge range "
                f"(< {merges.next_token})"
            )

    log.debug(f"parsed {len(special_toks)} special tokens and {len(merges)} merges")
    return VocabRecord(kind=kind, merges=merges, pattern=pattern, special_toks=special_toks)


def render_vocab(record: VocabRecord) -> str:
    """Human readable dump of every token and, for merges, its two children."""
    vocab = record.vocab()
    lines = [f"ST [{tok}] {seq}" for seq, tok in record.special_toks.items()]
    for tok in range(N_BYTES):
        lines.append(f"[{tok}] {render_bytes(vocab[tok])}")
    for merge in record.merges:
        left, right = merge.pair
        lines.append(
            f"[{merge.new_tok}] [{render_bytes(vocab[left])}][{render_bytes(vocab[right])}]"
            f" -> {render_bytes(vocab[merge.new_tok])}"
        )
    return "\n".join(lines) + "\n"


__all__ = [
    "FORMAT_VERSION",
    "MODEL_SUFFIX",
    "VOCAB_SUFFIX",
    "VocabRecord",
    "dumps",
    "loads",
    "read_kind",
    "render_vocab",
]
