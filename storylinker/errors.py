"""
Error taxonomy for a linker run.

Fatal errors subclass LinkerError and stop the current run. Localization
group errors carry the group id so the caller can decide whether the group
or the whole run is aborted.
"""

from typing import List, Optional


class LinkerError(Exception):
    """Base class for all errors that stop a linker run."""


class MissingInputError(LinkerError):
    """A required input document does not exist."""

    def __init__(self, path, description: str = "input file"):
        self.path = path
        super().__init__(f"Missing {description}: {path}")


class ChapterNumberError(LinkerError):
    """A chapter node has no parseable chapter number, or numbering has gaps."""


class ChapterCountError(LinkerError):
    """Fewer chapters exist than were requested."""

    def __init__(self, found: int, requested: int):
        self.found = found
        self.requested = requested
        super().__init__(
            f"Not enough chapters in the book. Found: {found}, requested: {requested}"
        )


class RegistryError(LinkerError):
    """Meta.xlsx content is unusable."""


class DuplicateRegistryNameError(RegistryError):
    """Two registry rows are ambiguous."""

    def __init__(self, kind: str, name: str, detail: str = ""):
        self.kind = kind
        self.name = name
        message = f"Duplicate {kind} in Meta.xlsx: {name}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)


class UnknownRegistryEntryError(RegistryError):
    """Flow content references an asset the registry does not describe."""


class LocalizationGroupError(LinkerError):
    """A localization document is missing keys present in the base language."""

    def __init__(self, group: str, language: str, keys: List[str],
                 sources: Optional[List[str]] = None):
        self.group = group
        self.language = language
        self.keys = list(keys)
        self.sources = list(sources or [])
        shown = ", ".join(self.keys[:10])
        if len(self.keys) > 10:
            shown += f" (+{len(self.keys) - 10} more)"
        message = f"Localization error in {group} for {language}: missing or empty keys: {shown}"
        if self.sources:
            message += f". Check files: {', '.join(self.sources)}"
        super().__init__(message)
