"""Tests for the merge table and the persisted vocabulary record."""

import pytest

from bytepair import Merge, MergeTable
from bytepair.errors import MalformedVocabFileError, ModelLoadError, PatternError, VocabularyError
from bytepair.pattern import get_pattern
from bytepair.store import VocabRecord, dumps, loads, read_kind, render_vocab


def _model(*body: str, special: tuple[str, ...] = (), kind: str = "basic") -> str:
    """Assemble .model text from special token lines and merge lines."""
    lines = ["bytepair 1", f"type {kind}", "re ", "---", str(len(special)), *special, "---", *body]
    return "\n".join(lines) + "\n"


# Merge table
# ---------------------------------------------------------------------------


def test_merge_table_lookups():
    table = MergeTable([(97, 97), (97, 98), (256, 257)])

    assert len(table) == 3
    assert table.rank((97, 98)) == 1
    assert table.token((256, 257)) == 258
    assert table.rank((1, 2)) is None
    assert (97, 97) in table
    assert table[0] == Merge((97, 97), 256, 0)
    assert table[-1] == Merge((256, 257), 258, 2)
    assert table.next_token == 259
    assert table.as_encoding() == {(97, 97): 256, (97, 98): 257, (256, 257): 258}


def test_merge_table_vocab_replays_merges():
    vocab = MergeTable([(97, 97), (97, 98), (256, 257)]).vocab()
    assert len(vocab) == 259
    assert vocab[97] == b"a"
    assert vocab[256] == b"aa"
    assert vocab[257] == b"ab"
    assert vocab[258] == b"aaab"


def test_merge_table_from_encoding_orders_by_token():
    table = MergeTable.from_encoding({(256, 257): 258, (97, 98): 257, (97, 97): 256})
    assert table.pairs == ((97, 97), (97, 98), (256, 257))


def test_merge_table_rejects_forward_references():
    with pytest.raises(VocabularyError):
        MergeTable([(97, 256)])


def test_merge_table_rejects_duplicate_pairs():
    with pytest.raises(VocabularyError):
        MergeTable([(97, 98), (97, 98)])


# Serialization
# ---------------------------------------------------------------------------


def test_dumps_format():
    record = VocabRecord(
        kind="regex",
        merges=MergeTable([(104, 105), (256, 33)]),
        pattern=get_pattern("gpt2"),
        special_toks={"<|end of text|>": 259, "<|bos|>": 258},
    )
    lines = dumps(record).splitlines()
    assert lines[0] == "bytepair 1"
    assert lines[1] == "type regex"
    assert lines[2] == f"re {get_pattern('gpt2')}"
    # special tokens are written in id order
    assert lines[3:8] == ["---", "2", "<|bos|> 258", "<|end of text|> 259", "---"]
    assert lines[8:] == ["104 105", "256 33"]


def test_loads_restores_record():
    record = VocabRecord(
        kind="regex",
        merges=MergeTable([(104, 105), (256, 33)]),
        pattern=get_pattern("gpt4"),
        special_toks={"<|bos|>": 258, "<|end of text|>": 259},
    )
    loaded = loads(dumps(record))

    assert loaded.kind == "regex"
    assert loaded.pattern == record.pattern
    assert loaded.merges == record.merges
    assert loaded.special_toks == record.special_toks
    vocab = loaded.vocab()
    assert vocab[257] == b"hi!"
    assert vocab[259] == b"<|end of text|>"


def test_loads_only_breaks_lines_on_newline():
    """Form feeds and unicode separators stay inside their line."""
    record = VocabRecord(
        kind="regex",
        merges=MergeTable([(97, 98)]),
        pattern="[^\u2028\x0c]+|[\u2028\x0c]",
        special_toks={"<a\x0cb>": 257, "<c\x85d\u2029>": 258},
    )
    loaded = loads(dumps(record))
    assert loaded.pattern == record.pattern
    assert loaded.special_toks == record.special_toks
    assert loaded.merges == record.merges


def test_loads_accepts_crlf_line_endings():
    record = loads(_model("97 98", special=("<a> 257",)).replace("\n", "\r\n"))
    assert record.special_toks == {"<a>": 257}
    assert record.merges.pairs == ((97, 98),)


def test_loads_accepts_stripped_pattern_line():
    text = _model("97 98").replace("re \n", "re\n")
    record = loads(text)
    assert record.pattern == ""
    assert record.merges.pairs == ((97, 98),)


def test_read_kind():
    assert read_kind(_model(kind="regex")) == "regex"


def test_dumps_rejects_multiline_pattern():
    record = VocabRecord(kind="regex", merges=MergeTable(), pattern="a\nb")
    with pytest.raises(PatternError):
        dumps(record)


@pytest.mark.parametrize(
    "text",
    [
        pytest.param("", id="empty"),
        pytest.param(_model().replace("bytepair 1", "ByteTok 0.1.0"), id="bad-header"),
        pytest.param(_model().replace("bytepair 1", "bytepair 9"), id="unknown-version"),
        pytest.param(_model(kind="wordpiece"), id="unknown-type"),
        pytest.param(_model().replace("re \n", "pattern x\n"), id="missing-pattern"),
        pytest.param(_model("97 98 256"), id="three-ids"),
        pytest.param(_model("97"), id="one-id"),
        pytest.param(_model("97 x"), id="not-a-number"),
        pytest.param(_model("97 256"), id="forward-reference"),
        pytest.param(_model("-1 97"), id="negative-id"),
        pytest.param(_model("97 98", "97 98"), id="duplicate-merge"),
        pytest.param(_model("97 98", ""), id="blank-merge-line"),
        pytest.param(_model(special=("<a> 300", "<a> 301")), id="duplicate-special"),
        pytest.param(_model(special=("<a> 300", "<b> 300")), id="duplicate-special-id"),
        pytest.param(_model("97 98", special=("<a> 256",)), id="special-in-merge-range"),
        pytest.param(_model(special=("<a>",)), id="special-without-id"),
        pytest.param(_model(special=("<a> x",)), id="special-id-not-a-number"),
        pytest.param(_model().replace("---\n0\n", "---\n-1\n"), id="negative-count"),
        pytest.param(_model().replace("---\n0\n", "---\n2\n"), id="count-too-large"),
        pytest.param("bytepair 1\ntype basic\nre \n0\n", id="missing-marker"),
    ],
)
def test_loads_rejects_malformed_records(text):
    with pytest.raises(MalformedVocabFileError) as exc_info:
        loads(text)
    assert isinstance(exc_info.value, ModelLoadError)


# Human readable vocab
# ---------------------------------------------------------------------------


def test_render_vocab_shows_merge_derivation():
    record = VocabRecord(
        kind="basic",
        merges=MergeTable([(97, 97), (256, 10)]),
        special_toks={"<|eot|>": 258},
    )
    lines = render_vocab(record).splitlines()

    assert lines[0] == "ST [258] <|eot|>"
    assert "[97] a" in lines
    assert "[10] \\u000a" in lines
    assert "[256] [a][a] -> aa" in lines
    assert "[257] [aa][\\u000a] -> aa\\u000a" in lines
