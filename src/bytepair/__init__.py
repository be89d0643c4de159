"""bytepair: byte-level BPE tokenization library."""

from ._models.base import Tokenizer
from ._models.basic import BasicTokenizer
from ._models.regex import RegexTokenizer
from ._progress import disable_progress, enable_progress
from .factory import (
    from_pretrained,
    get_tokenizer,
)
from .merges import Merge, MergeTable
from .parallel import ParallelMode, list_parallel_modes
from .pattern import TokenPattern, get_pattern, list_patterns
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)
from .trainer import BPETrainingResult

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bytepair")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "Tokenizer",
    "BasicTokenizer",
    "RegexTokenizer",
    "Merge",
    "MergeTable",
    "BPETrainingResult",
    "TokenPattern",
    "ParallelMode",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "get_tokenizer",
    "get_strategy",
    "get_pattern",
    "from_pretrained",
    "list_patterns",
    "list_parallel_modes",
    "list_strategies",
    "enable_progress",
    "disable_progress",
]
