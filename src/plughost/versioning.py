"""Semantic versions and host-compatibility ranges.

Plugin manifests declare their own ``version`` (strict semver) and a
``hostVersionRange`` constraint that the running host must satisfy. The
range grammar is the npm-style subset plugin authors actually write:

* comparators ``>=``, ``>``, ``<=``, ``<``, ``=`` (``=`` is the default),
* caret ``^1.2.3`` (same major; same minor when major is 0),
* tilde ``~1.2.3`` (same minor),
* wildcards ``*``, ``x``, ``1.x``, ``1.2.*`` and partial versions ``1.2``,
* whitespace-separated comparators are ANDed, ``||`` separates alternatives.

Example::

    >>> VersionRange.parse("^1.2.0 || >=3").contains("1.9.4")
    True
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Optional

_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])(?:\.(?P<minor>\d+|[xX*]))?(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op>>=|<=|>|<|=|\^|~)?\s*(?P<version>\S+)$")
_WILDCARDS = {"x", "X", "*"}


@total_ordering
@dataclass(frozen=True)
class SemanticVersion:
    """A parsed ``MAJOR.MINOR.PATCH[-prerelease][+build]`` version.

    Build metadata is kept for display but ignored in comparisons, and a
    pre-release sorts before the corresponding release.
    """

    major: int
    minor: int
    patch: int
    prerelease: str = ""
    build: str = field(default="", compare=False)

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        """Parse a strict semver string.

        Raises:
            ValueError: If *text* is not a valid semantic version.
        """
        match = _SEMVER_RE.match(text.strip())
        if match is None:
            raise ValueError(f"'{text}' is not a semantic version (expected MAJOR.MINOR.PATCH)")
        return cls(
            int(match["major"]),
            int(match["minor"]),
            int(match["patch"]),
            match["prerelease"] or "",
            match["build"] or "",
        )

    @classmethod
    def is_valid(cls, text: str) -> bool:
        return _SEMVER_RE.match(text.strip()) is not None

    def _key(self) -> tuple:
        if not self.prerelease:
            return (self.major, self.minor, self.patch, (1,))
        parts = tuple(
            (0, int(p), "") if p.isdigit() else (1, 0, p) for p in self.prerelease.split(".")
        )
        return (self.major, self.minor, self.patch, (0, parts))

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text


@dataclass(frozen=True)
class _Bound:
    op: str  # one of >=, >, <=, <
    version: SemanticVersion

    def admits(self, version: SemanticVersion) -> bool:
        if self.op == ">=":
            return version >= self.version
        if self.op == ">":
            return version > self.version
        if self.op == "<=":
            return version <= self.version
        return version < self.version


def _partial(text: str) -> tuple[Optional[int], Optional[int], Optional[int], str]:
    match = _PARTIAL_RE.match(text)
    if match is None:
        raise ValueError(f"invalid version in range: '{text}'")
    parts: list[Optional[int]] = []
    for name in ("major", "minor", "patch"):
        raw = match[name]
        parts.append(None if raw is None or raw in _WILDCARDS else int(raw))
    # Anything after a wildcard is a wildcard too ("1.x.3" means "1.x").
    for i in range(1, 3):
        if parts[i - 1] is None:
            parts[i] = None
    return parts[0], parts[1], parts[2], match["prerelease"] or ""


def _expand(op: str, text: str) -> list[_Bound]:
    major, minor, patch, pre = _partial(text)
    if major is None:
        return []  # "*" admits everything

    floor = SemanticVersion(major, minor or 0, patch or 0, pre)

    if op == "^":
        if major > 0 or minor is None:
            ceiling = SemanticVersion(major + 1, 0, 0)
        elif minor > 0 or patch is None:
            ceiling = SemanticVersion(0, minor + 1, 0)
        else:
            ceiling = SemanticVersion(0, 0, patch + 1)
        return [_Bound(">=", floor), _Bound("<", ceiling)]

    if op == "~":
        if minor is None:
            ceiling = SemanticVersion(major + 1, 0, 0)
        else:
            ceiling = SemanticVersion(major, minor + 1, 0)
        return [_Bound(">=", floor), _Bound("<", ceiling)]

    if op in ("", "="):
        if minor is None:
            return [_Bound(">=", floor), _Bound("<", SemanticVersion(major + 1, 0, 0))]
        if patch is None:
            return [_Bound(">=", floor), _Bound("<", SemanticVersion(major, minor + 1, 0))]
        return [_Bound(">=", floor), _Bound("<=", floor)]

    if op == ">":
        if minor is None:
            return [_Bound(">=", SemanticVersion(major + 1, 0, 0))]
        if patch is None:
            return [_Bound(">=", SemanticVersion(major, minor + 1, 0))]
        return [_Bound(">", floor)]

    if op == "<=":
        if minor is None:
            return [_Bound("<", SemanticVersion(major + 1, 0, 0))]
        if patch is None:
            return [_Bound("<", SemanticVersion(major, minor + 1, 0))]
        return [_Bound("<=", floor)]

    # ">=" and "<" use the zero-filled floor directly.
    return [_Bound(op, floor)]


@dataclass(frozen=True)
class VersionRange:
    """A parsed compatibility range (alternatives of ANDed bounds)."""

    text: str
    alternatives: tuple[tuple[_Bound, ...], ...]

    @classmethod
    def parse(cls, text: str) -> "VersionRange":
        """Parse a range expression.

        Raises:
            ValueError: If any comparator cannot be parsed.
        """
        source = (text or "").strip()
        alternatives: list[tuple[_Bound, ...]] = []
        for alternative in (source or "*").split("||"):
            tokens = _tokenize(alternative)
            bounds: list[_Bound] = []
            for token in tokens:
                match = _COMPARATOR_RE.match(token)
                if match is None:
                    raise ValueError(f"invalid comparator '{token}' in range '{text}'")
                bounds.extend(_expand(match["op"] or "", match["version"]))
            alternatives.append(tuple(bounds))
        return cls(source or "*", tuple(alternatives))

    def contains(self, version: SemanticVersion | str) -> bool:
        if isinstance(version, str):
            version = SemanticVersion.parse(version)
        return any(all(b.admits(version) for b in bounds) for bounds in self.alternatives)

    def __contains__(self, version: object) -> bool:
        if not isinstance(version, (str, SemanticVersion)):
            return False
        return self.contains(version)

    def __str__(self) -> str:
        return self.text


def _tokenize(alternative: str) -> list[str]:
    """Split an alternative into comparators, gluing a bare operator to its version."""
    raw = alternative.split()
    tokens: list[str] = []
    pending = ""
    for piece in raw:
        if piece in (">=", "<=", ">", "<", "=", "^", "~"):
            pending = piece
            continue
        tokens.append(pending + piece)
        pending = ""
    if pending:
        raise ValueError(f"dangling operator '{pending}' in range '{alternative.strip()}'")
    return tokens or ["*"]
