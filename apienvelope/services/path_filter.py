"""
API Envelope — Path Filter
============================

What:  Decides whether a request bypasses the wrapper entirely.
Why:   Documentation pages, static assets and explicitly excluded endpoints
       must reach the client byte-for-byte as the handler wrote them.
How:   Rules evaluated in order, first match wins:
       1. Reserved documentation prefix (/docs, /swagger, ...)  → skip
       2. Not an API route                                      → skip
       3. Matches an exclude path (in list order)               → skip
       Otherwise the request is wrapped.

API route test:
    is_api_only=True   → any path that is not a static asset (.js/.html/.css)
    otherwise          → only paths under wrap_api_path_prefix (segment-wise)

Regex exclude paths are compiled with the `regex` package and searched with
its engine-level timeout (regex_timeout, default 1s); the path is
attacker-controlled. The search runs in a worker thread with the GIL released
(concurrent=True), so a slow pattern never stalls other requests. A timed-out
pattern counts as "no match".
"""

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

import regex

from apienvelope.config import ExcludeMode, ExcludePath, WrapperOptions

logger = logging.getLogger(__name__)

STATIC_ASSET_EXTENSIONS = (".js", ".html", ".css")


def starts_with_segments(path: str, prefix: str) -> bool:
    """
    Case-insensitive path-segment prefix test.

        starts_with_segments("/API/notes", "/api")  → True
        starts_with_segments("/api", "/api")        → True
        starts_with_segments("/apidocs", "/api")    → False
    """
    prefix = prefix.rstrip("/").lower()
    if not prefix:
        return True
    path = path.lower()
    return path == prefix or path.startswith(prefix + "/")


class PathFilter:
    """Path rules compiled once from a WrapperOptions instance."""

    def __init__(self, options: WrapperOptions):
        self.options = options
        self._exclusions = self._compile(options.exclude_paths)

    @staticmethod
    def _compile(
        exclude_paths: Sequence[ExcludePath],
    ) -> List[Tuple[ExcludePath, Optional[regex.Pattern]]]:
        return [
            (entry, regex.compile(entry.path) if entry.mode is ExcludeMode.REGEX else None)
            for entry in exclude_paths
        ]

    async def should_skip(
        self, path: str, exclude_paths: Optional[Sequence[ExcludePath]] = None
    ) -> bool:
        """
        True when the request must not be wrapped.

        Args:
            path:          Request path (without query string)
            exclude_paths: Overrides the configured exclude list
        """
        if self.is_reserved_path(path):
            return True

        if not self.is_api_route(path):
            return True

        exclusions = (
            self._exclusions if exclude_paths is None else self._compile(exclude_paths)
        )
        for entry, pattern in exclusions:
            if await self._matches(entry, pattern, path):
                return True
        return False

    def is_reserved_path(self, path: str) -> bool:
        return any(
            starts_with_segments(path, prefix)
            for prefix in self.options.reserved_path_prefixes
        )

    def is_api_route(self, path: str) -> bool:
        if self.options.is_api_only and not path.lower().endswith(STATIC_ASSET_EXTENSIONS):
            return True
        return starts_with_segments(path, self.options.wrap_api_path_prefix)

    async def _matches(
        self, entry: ExcludePath, pattern: Optional[regex.Pattern], path: str
    ) -> bool:
        if entry.mode is ExcludeMode.STRICT:
            return path.lower() == entry.path.lower()
        if entry.mode is ExcludeMode.STARTS_WITH:
            return starts_with_segments(path, entry.path)
        return await self._regex_matches(pattern, path)

    async def _regex_matches(self, pattern: regex.Pattern, path: str) -> bool:
        try:
            match = await asyncio.to_thread(
                pattern.search,
                path,
                concurrent=True,
                timeout=self.options.regex_timeout,
            )
        except TimeoutError:
            logger.warning(
                "Exclude pattern %r timed out after %.1fs on path %s",
                pattern.pattern,
                self.options.regex_timeout,
                path,
            )
            return False
        return match is not None
