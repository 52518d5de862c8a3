#!/usr/bin/env python3
"""
Run-scoped memoization.

One RunCache belongs to one pipeline run and is passed to every stage that
reads spreadsheets or parses the flow export. Inputs are assumed static for
the run, so entries never expire; call clear() when switching project or
language set.
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Hashable, Tuple

logger = logging.getLogger(__name__)


class RunCache:
    """Three-level cache: parsed tables, merged groups, flow extractions."""

    def __init__(self):
        self.tables: Dict[Hashable, Dict[str, str]] = {}
        self.groups: Dict[Hashable, Dict[str, str]] = {}
        self.extractions: Dict[Hashable, object] = {}

    def table(self, key: Tuple, loader: Callable[[], Dict[str, str]]) -> Dict[str, str]:
        """Parsed single-file table keyed by (path, column, mode)."""
        if key in self.tables:
            logger.debug(f"Cache hit for {Path(str(key[0])).name} {key[1:]}")
            return self.tables[key]
        data = loader()
        self.tables[key] = data
        return data

    def group(self, key: Tuple, loader: Callable[[], Dict[str, str]]) -> Dict[str, str]:
        """Merged multi-file dictionary keyed by (paths, column, internal flag)."""
        if key not in self.groups:
            self.groups[key] = loader()
        return self.groups[key]

    def extraction(self, key: Tuple, loader: Callable[[], object]):
        if key not in self.extractions:
            self.extractions[key] = loader()
        return self.extractions[key]

    def prime_table(self, key: Tuple, data: Dict[str, str]) -> None:
        """Store freshly written table data so the next read skips the disk."""
        self.tables[key] = dict(data)
        # Merged groups may include the stale file
        stale = [k for k in self.groups if key[0] in k[0]]
        for k in stale:
            del self.groups[k]

    def clear(self) -> None:
        self.tables.clear()
        self.groups.clear()
        self.extractions.clear()
        logger.info("Run cache cleared")

    def info(self) -> str:
        if not (self.tables or self.groups or self.extractions):
            return "Cache is empty"
        files = sorted({Path(str(k[0])).name for k in self.tables})
        shown = ", ".join(files[:3]) + ("..." if len(files) > 3 else "")
        return (f"Cache: {len(self.tables)} tables from {len(files)} files ({shown}), "
                f"{len(self.groups)} groups, {len(self.extractions)} extractions")
