"""Factory functions for creating tokenizers."""

from pathlib import Path
from typing import Final, Literal, overload

from ._models.base import Tokenizer
from ._models.basic import BasicTokenizer
from ._models.regex import RegexTokenizer
from .errors import ModelLoadError
from .pattern import DEFAULT_PATTERN, TokenPattern
from .store import MODEL_SUFFIX, read_kind

TokenizerKind = Literal["basic", "regex"]

Pattern = Literal["gpt2", "gpt4", "gpt4o", "llama3", "qwen2"]

_TOKENIZER_REGISTRY: Final[dict[str, type[Tokenizer]]] = {
    "regex": RegexTokenizer,
    "basic": BasicTokenizer,
}


@overload
def get_tokenizer(kind: Literal["basic"]) -> BasicTokenizer: ...


@overload
def get_tokenizer(
    kind: Literal["regex"] = "regex",
    pattern: Pattern = "gpt4",
    *,
    custom_pattern: str | None = None,
) -> RegexTokenizer: ...


def get_tokenizer(
    kind: TokenizerKind = "regex",
    pattern: Pattern = DEFAULT_PATTERN,
    *,
    custom_pattern: str | None = None,
) -> Tokenizer:
    """
    Create an untrained tokenizer.

    :param kind: "basic" for plain byte-level BPE, "regex" for pattern
                 pre-split BPE.
    :param pattern: Built-in pattern name for the regex tokenizer.
                    Ignored if custom_pattern is provided.
    :param custom_pattern: Custom regex pattern string. Overrides pattern.
    :return: Configured tokenizer instance.
    :raises ModelLoadError: If ``kind`` is unknown.
    :raises PatternError: If the pattern name is unknown or custom_pattern is invalid.

    .. code-block:: python

        tokenizer = get_tokenizer("regex", "llama3")
        tokenizer = get_tokenizer(custom_pattern=r"\\p{L}+|\\p{N}+|\\s+|[^\\s\\p{L}\\p{N}]+")
    """
    if kind not in _TOKENIZER_REGISTRY:
        raise ModelLoadError(
            "unknown tokenizer type",
            type_mismatch=(kind, list(_TOKENIZER_REGISTRY.keys())),
        )
    if kind == "basic":
        return BasicTokenizer()

    # the regex initializer validates custom patterns
    if custom_pattern is not None:
        return RegexTokenizer(custom_pattern)
    return RegexTokenizer(TokenPattern.get(pattern))


def _detect_tokenizer_type(model_path: str) -> str:
    """Read tokenizer type from model file header."""
    path = Path(model_path)

    if not path.exists():
        raise ModelLoadError("model filepath does not exist", model_path=str(path))

    if path.suffix != MODEL_SUFFIX:
        raise ModelLoadError("expected .model file", model_path=str(path))

    return read_kind(path.read_text(encoding="utf-8"))


def from_pretrained(model_path: str) -> Tokenizer:
    """
    Load a trained tokenizer from disk.

    The tokenizer type is read from the model file header.

    :param model_path: Path to the .model file.
    :return: Loaded tokenizer instance with vocabulary and configuration.
    :raises ModelLoadError: If the file doesn't exist or has the wrong extension.
    :raises MalformedVocabFileError: If the file is structurally invalid.

    .. code-block:: python

        tokenizer = from_pretrained("path/to/model.model")
        tokens = tokenizer.encode("Hello world")
    """
    tok_type = _detect_tokenizer_type(model_path)
    tokenizer = _TOKENIZER_REGISTRY[tok_type]()
    tokenizer.load(model_path)
    return tokenizer
