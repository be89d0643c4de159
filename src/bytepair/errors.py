"""Custom exception hierarchy for bytepair tokenization errors."""

import regex as re

from .types import Token


class BytePairError(Exception):
    """Base exception for all bytepair errors."""


class TrainingError(BytePairError):
    """Raised when tokenizer training fails or an untrained tokenizer is used."""


class EmptyCorpusError(TrainingError):
    """Raised when the training corpus holds no trainable bytes."""


class VocabularyError(BytePairError):
    """Raised when vocabulary operations fail."""

    def __init__(
        self,
        message: str,
        *,
        vocab_size: int | None = None,
        invalid_tok: Token | None = None,
    ) -> None:
        """Initialize with optional token and vocab_size that get appended to the message."""
        extra = " "
        if vocab_size is not None:
            extra += f"(vocab size: {vocab_size}) "
        if invalid_tok is not None:
            extra += f"(invalid token: {invalid_tok}) "
        super().__init__(message + extra.rstrip())
        self.vocab_size = vocab_size
        self.invalid_tok = invalid_tok


class InvalidVocabSizeError(VocabularyError):
    """Raised when a requested vocabulary size cannot be honoured."""


class UnknownTokenError(VocabularyError):
    """Raised when decoding a token id with no vocabulary entry."""


class SpecialTokenError(BytePairError):
    """Raised when special token handling fails."""

    def __init__(self, message: str, *, found_tokens: set[str] | None = None) -> None:
        """Initialize with optional found_tokens that get appended to the message."""
        if found_tokens:
            message = f"{message} (found: {', '.join(sorted(found_tokens))})"
        super().__init__(message)
        self.found_tokens = found_tokens


class TokenizationError(BytePairError):
    """Raised when tokenization fails."""

    def __init__(
        self,
        message: str,
        *,
        position: int | None = None,
        input_text: str | None = None,
    ) -> None:
        if position is not None:
            message = f"{message} (position: {position})"
        super().__init__(message)
        self.position = position
        self.input_text = input_text


class ModelLoadError(BytePairError):
    """Raised when loading a tokenizer model fails."""

    def __init__(
        self,
        message: str,
        *,
        model_path: str | None = None,
        type_mismatch: tuple[str, list[str]] | None = None,
    ) -> None:
        extra = " "
        if model_path:
            extra += f"(path: {model_path}) "
        if type_mismatch is not None:
            extra += f"(expected: {', '.join(type_mismatch[1])}) (got {type_mismatch[0]}) "
        super().__init__(message + extra.rstrip())
        self.model_path = model_path
        self.type_mismatch = type_mismatch


class MalformedVocabFileError(ModelLoadError):
    """Raised when a persisted vocabulary record is structurally invalid."""

    def __init__(self, message: str, *, line_no: int | None = None) -> None:
        if line_no is not None:
            message = f"{message} (line: {line_no})"
        super().__init__(message)
        self.line_no = line_no


class PatternError(BytePairError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        Args:
            message: Error message.
            pattern: The regex pattern that failed.
            regex_err: The underlying regex error from the regex library.
        """
        extra = " "
        if pattern:
            extra += f"(pattern: {pattern!r}) "
        if regex_err:
            extra += f"(reason: {regex_err}) "
        super().__init__(message + extra.rstrip())
        self.pattern = pattern
        self.regex_err = regex_err


class StrategyError(BytePairError):
    """Raised when a strategy or parallel mode name cannot be resolved."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        extra = " "
        if invalid_name:
            extra += f"(available: {available}) (got {invalid_name}) "
        super().__init__(message + extra.rstrip())
        self.invalid_name = invalid_name
        self.available = available
