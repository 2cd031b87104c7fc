from __future__ import annotations

import http.client
import logging
import urllib.request
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import ManifestEmpty, ManifestUnavailable
from ..models import ArtifactDescriptor, ArtifactKind, Manifest

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS: Dict[str, ArtifactKind] = {
    ".cab": ArtifactKind.CAB_PACKAGE,
    ".appx": ArtifactKind.APP_PACKAGE,
    ".appxbundle": ArtifactKind.APP_PACKAGE,
    ".msix": ArtifactKind.APP_PACKAGE,
    ".msixbundle": ArtifactKind.APP_PACKAGE,
    ".exe": ArtifactKind.SILENT_INSTALLER,
    ".msi": ArtifactKind.SILENT_INSTALLER,
}

Opener = Callable[..., object]


def _is_url(source: str) -> bool:
    return source.split(":", 1)[0].lower() in {"http", "https", "file"}


def classify(name: str, extensions: Mapping[str, ArtifactKind]) -> Optional[ArtifactKind]:
    """Return the kind for ``name`` by its suffix, or None if unrecognized.

    Longest suffix wins, so ``.msixbundle`` is not mistaken for a shorter
    configured suffix that happens to match its tail.
    """
    lowered = name.lower()
    for suffix in sorted(extensions, key=len, reverse=True):
        if lowered.endswith(suffix.lower()) and len(lowered) > len(suffix):
            return extensions[suffix]
    return None


def parse_manifest(
    text: str,
    *,
    source: str = "<text>",
    extensions: Mapping[str, ArtifactKind] = DEFAULT_EXTENSIONS,
) -> Manifest:
    artifacts: List[ArtifactDescriptor] = []
    dropped = 0
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            dropped += 1
            continue
        kind = classify(line, extensions)
        if kind is None:
            dropped += 1
            continue
        artifacts.append(ArtifactDescriptor(name=line, kind=kind))

    if not artifacts:
        raise ManifestEmpty(source)

    logger.debug("Manifest %s: %d entries, %d lines ignored", source, len(artifacts), dropped)
    return Manifest(source=source, artifacts=tuple(artifacts))


def read_manifest_text(source: str, *, timeout: float = 30.0, opener: Opener | None = None) -> str:
    try:
        if _is_url(source):
            open_url = opener or urllib.request.urlopen
            request = urllib.request.Request(source, headers={"User-Agent": "langpack-provisioner"})
            with open_url(request, timeout=timeout) as response:  # type: ignore[attr-defined]
                data = response.read()
        else:
            data = Path(source).expanduser().read_bytes()
    except (OSError, ValueError, http.client.HTTPException) as e:
        raise ManifestUnavailable(source, e) from e

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ManifestUnavailable(source, e) from e


def load_manifest(
    source: str,
    *,
    extensions: Mapping[str, ArtifactKind] = DEFAULT_EXTENSIONS,
    timeout: float = 30.0,
    opener: Opener | None = None,
) -> Manifest:
    """Fetch and parse a plain-text manifest (one artifact filename per line)."""

    text = read_manifest_text(source, timeout=timeout, opener=opener)
    manifest = parse_manifest(text, source=source, extensions=extensions)
    logger.info("Loaded manifest %s (%d artifacts)", source, len(manifest))
    return manifest
