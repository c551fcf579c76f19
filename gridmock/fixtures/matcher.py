"""
Path pattern matching for fixtures.

Patterns are split into segments once at registration time. A segment is
either a literal ("items") or a parameter (":id"). Matching is segment by
segment, so tie-break rules stay explicit:

- fewer parameter segments wins (more specific)
- on equal specificity, the first-registered fixture wins
"""

from dataclasses import dataclass
from typing import Optional


def normalize_path(path: str) -> str:
    """Collapse duplicate slashes and drop a trailing slash (except root)."""
    parts = [p for p in path.split("/") if p]
    return "/" + "/".join(parts)


@dataclass(frozen=True)
class Segment:
    value: str
    is_param: bool = False

    def matches(self, part: str) -> bool:
        return self.is_param or self.value == part


@dataclass(frozen=True)
class PathPattern:
    """A compiled path pattern such as /api/leagues-management/:id."""

    raw: str
    segments: tuple[Segment, ...]

    @classmethod
    def compile(cls, pattern: str) -> "PathPattern":
        if not pattern.startswith("/"):
            raise ValueError(f"Path pattern must start with '/': {pattern!r}")
        segments = []
        seen: set[str] = set()
        for part in normalize_path(pattern).split("/")[1:]:
            if not part:
                continue
            if part.startswith(":"):
                name = part[1:]
                if not name:
                    raise ValueError(f"Empty parameter name in {pattern!r}")
                if name in seen:
                    raise ValueError(f"Duplicate parameter ':{name}' in {pattern!r}")
                seen.add(name)
                segments.append(Segment(name, is_param=True))
            else:
                segments.append(Segment(part))
        return cls(raw=pattern, segments=tuple(segments))

    @property
    def param_count(self) -> int:
        return sum(1 for s in self.segments if s.is_param)

    def match(self, path: str) -> Optional[dict[str, str]]:
        """Return extracted path params, or None when the path does not match."""
        parts = [p for p in path.split("/") if p]
        if len(parts) != len(self.segments):
            return None
        params: dict[str, str] = {}
        for segment, part in zip(self.segments, parts):
            if not segment.matches(part):
                return None
            if segment.is_param:
                params[segment.value] = part
        return params


@dataclass(frozen=True)
class Matcher:
    """A pattern bound to the registration order of its fixture."""

    pattern: PathPattern
    order: int

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.pattern.param_count, self.order)


def best_match(
    matchers: list[Matcher], path: str
) -> Optional[tuple[Matcher, dict[str, str]]]:
    """Pick the most specific matcher for path, first-registered on ties."""
    for matcher in sorted(matchers, key=lambda m: m.sort_key):
        params = matcher.pattern.match(path)
        if params is not None:
            return matcher, params
    return None
