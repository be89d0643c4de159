"""Policies deciding which registered special tokens are honoured while encoding."""

from abc import ABC, abstractmethod
from typing import Final, Literal, overload, override
import logging

from .errors import SpecialTokenError, StrategyError
from .types import SpecialTokens

log = logging.getLogger(__name__)


class SpecialTokenStrategy(ABC):
    """Base strategy for handling special tokens during encoding."""

    @abstractmethod
    def handle(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        """
        Return the subset of ``special_toks`` to match as atomic units in ``text``.

        Special tokens left out are encoded as ordinary text.
        """


class AllowAllStrategy(SpecialTokenStrategy):
    """Every registered special token is matched. Used when no strategy is given."""

    @override
    def handle(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        return special_toks


class AllowNoneStrategy(SpecialTokenStrategy):
    """Special token strings are encoded as ordinary text."""

    @override
    def handle(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        if any(seq in text for seq in special_toks):
            log.warning("special tokens found in text, encoding them as plain text")
        return {}


class AllowNoneRaiseStrategy(SpecialTokenStrategy):
    """Refuse text that contains any registered special token string."""

    @override
    def handle(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        found = {seq for seq in special_toks if seq in text}
        if found:
            raise SpecialTokenError(
                "special tokens found in text but not allowed", found_tokens=found
            )
        return {}


class AllowCustomStrategy(SpecialTokenStrategy):
    """Match only the special tokens named in ``allowed_subset``."""

    def __init__(self, allowed_subset: set[str]) -> None:
        super().__init__()
        self.allowed_subset = set(allowed_subset)

    @override
    def handle(self, text: str, special_toks: SpecialTokens) -> SpecialTokens:
        unknown = self.allowed_subset.difference(special_toks)
        if unknown:
            log.warning(f"ignoring unregistered special tokens: {sorted(unknown)}")
        return {
            seq: tok for seq, tok in special_toks.items() if seq in self.allowed_subset
        }


StrategyName = Literal["all", "none", "none-raise", "custom"]

_SPECIAL_TOKEN_STRATEGIES: Final[dict[str, type[SpecialTokenStrategy]]] = {
    "all": AllowAllStrategy,
    "none": AllowNoneStrategy,
    "none-raise": AllowNoneRaiseStrategy,
    "custom": AllowCustomStrategy,
}


def list_strategies() -> list[str]:
    """Return available special token strategy names."""
    return list(_SPECIAL_TOKEN_STRATEGIES.keys())


@overload
def get_strategy(
    name: Literal["all", "none", "none-raise"],
) -> SpecialTokenStrategy: ...


@overload
def get_strategy(
    name: Literal["custom"], allowed_subset: set[str]
) -> AllowCustomStrategy: ...


def get_strategy(
    name: StrategyName = "all", allowed_subset: set[str] | None = None
) -> SpecialTokenStrategy:
    """
    Create a special token strategy by name.

    :param name: "all" matches every special token, "none" encodes them as
                 text, "none-raise" rejects text containing them, "custom"
                 matches only ``allowed_subset``.
    :param allowed_subset: Required for "custom".
    :raises StrategyError: If name is unknown or allowed_subset is missing for custom.

    .. code-block:: python

        strategy = get_strategy("none-raise")
        strategy = get_strategy("custom", allowed_subset={"<|endoftext|>"})
    """
    if name not in _SPECIAL_TOKEN_STRATEGIES:
        raise StrategyError(
            "unknown strategy name",
            invalid_name=name,
            available=list_strategies(),
        )

    if name == "custom":
        if allowed_subset is None:
            raise StrategyError("allowed_subset is required for custom strategy")
        return AllowCustomStrategy(allowed_subset)

    return _SPECIAL_TOKEN_STRATEGIES[name]()


__all__ = [
    "StrategyName",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "list_strategies",
    "get_strategy",
]
