"""Regular-expression exclusions for local paths."""

import re
from pathlib import Path
from typing import Iterable, List, Optional, Pattern, Sequence, Union

from ..config.loader import ConfigurationError


def is_excluded(path: str, patterns: Iterable[Pattern]) -> bool:
    """Whether any pattern matches somewhere in ``path``.

    ``path`` is relative to the synchronization root and uses forward slashes.
    """
    return any(pattern.search(path) for pattern in patterns)


class ExclusionSet:
    """Ordered, compiled exclusion patterns for one run."""

    def __init__(self, expressions: Sequence[str] = ()):
        self.expressions: tuple = tuple(expressions)
        try:
            self.patterns: List[Pattern] = [re.compile(expr) for expr in self.expressions]
        except re.error as e:
            raise ConfigurationError(f"Invalid exclusion pattern '{e.pattern}': {e}") from e

    def matches(self, path: str) -> bool:
        return is_excluded(path, self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)


def load_exclusions(file_path: Optional[Union[str, Path]]) -> ExclusionSet:
    """Read one regular expression per line; blank lines are ignored.

    Raises:
        ConfigurationError: If the file cannot be read or a pattern does not compile
    """
    if file_path is None:
        return ExclusionSet()

    try:
        text = Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read exclusions file {file_path}: {e}") from e

    return ExclusionSet([line for line in text.splitlines() if line.strip()])
