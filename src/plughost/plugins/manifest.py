"""Manifest parsing and host-compatibility checks.

:func:`parse_manifest` is side-effect free: it never touches storage and
never executes plugin code. Structural validation lives on the pydantic
:class:`~plughost.models.Manifest` model; this module turns pydantic's
errors into one :class:`~plughost.exceptions.ManifestValidationError`
listing every problem found.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from plughost.exceptions import ManifestValidationError
from plughost.models import Manifest
from plughost.versioning import SemanticVersion


def _format_errors(exc: ValidationError) -> list[str]:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "manifest"
        message = err.get("msg", "invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        problems.append(f"{location}: {message}")
    return problems


def parse_manifest(raw: Mapping[str, Any] | Manifest) -> Manifest:
    """Validate raw manifest data and return an immutable :class:`Manifest`.

    Args:
        raw: Decoded ``plugin.json`` content. An already-parsed
            :class:`Manifest` is returned unchanged.

    Returns:
        The validated manifest.

    Raises:
        ManifestValidationError: If a required field is missing or
            ill-typed, ``capabilityTypes`` is empty or unknown, or the
            ``configSchema`` is inconsistent. ``errors`` lists each problem.
    """
    if isinstance(raw, Manifest):
        return raw
    if not isinstance(raw, Mapping):
        raise ManifestValidationError(None, f"manifest must be an object, got {type(raw).__name__}")

    plugin_id = raw.get("id") if isinstance(raw.get("id"), str) else None
    try:
        return Manifest.model_validate(dict(raw))
    except ValidationError as exc:
        problems = _format_errors(exc)
        summary = "; ".join(problems)
        raise ManifestValidationError(plugin_id, f"invalid manifest: {summary}", problems) from exc


def load_manifest_file(path: str | Path) -> Manifest:
    """Read and parse a ``plugin.json`` file.

    Raises:
        ManifestValidationError: If the file is unreadable, not JSON, or invalid.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ManifestValidationError(None, f"cannot read {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ManifestValidationError(None, f"{path} is not UTF-8 text: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestValidationError(None, f"{path} is not valid JSON: {exc}") from exc
    return parse_manifest(raw)


def check_host_compatibility(manifest: Manifest, host_version: str) -> None:
    """Ensure *host_version* satisfies the manifest's ``hostVersionRange``.

    Raises:
        ManifestValidationError: If the running host is outside the range.
    """
    if not manifest.version_range.contains(SemanticVersion.parse(host_version)):
        raise ManifestValidationError(
            manifest.id,
            f"requires host version '{manifest.host_version_range}', running {host_version}",
        )
