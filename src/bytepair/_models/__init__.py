"""Tokenizer implementations for byte-level text processing."""

from .base import Tokenizer
from .basic import BasicTokenizer
from .regex import RegexTokenizer


__all__ = ["Tokenizer", "BasicTokenizer", "RegexTokenizer"]
