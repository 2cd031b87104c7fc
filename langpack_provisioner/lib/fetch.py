from __future__ import annotations

import http.client
import logging
import os
import shutil
import tempfile
import urllib.parse
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Sequence, Union

from ..errors import FetchFailed
from ..models import ArtifactDescriptor, LocalArtifact

logger = logging.getLogger(__name__)

Opener = Callable[..., object]
FetchOutcome = Union[LocalArtifact, FetchFailed]

_CHUNK = 1024 * 1024


def artifact_url(base_url: str, name: str) -> str:
    return base_url.rstrip("/") + "/" + urllib.parse.quote(name)


def is_plain_filename(name: str) -> bool:
    """True if ``name`` names a file directly inside the store (no separators, no ``..``)."""
    return bool(name) and name not in {".", ".."} and not any(sep in name for sep in ("/", "\\", ":"))


class ArtifactFetcher:
    """Downloads artifacts into a local store, publishing each file atomically.

    A file already present at ``store/<name>`` is never re-downloaded. Data is
    streamed to a ``.part`` file next to the destination and renamed into
    place only after the full body was written, so an interrupted transfer
    never leaves a file that looks complete.
    """

    def __init__(
        self,
        base_url: str,
        store: Path | str,
        *,
        timeout: float = 60.0,
        opener: Opener | None = None,
        dry_run: bool = False,
    ) -> None:
        self.base_url = base_url
        self.store = Path(store)
        self.timeout = timeout
        self.dry_run = dry_run
        self._open = opener or urllib.request.urlopen

    def local_path(self, descriptor: ArtifactDescriptor) -> Path:
        return self.store / descriptor.name

    def fetch(self, descriptor: ArtifactDescriptor) -> LocalArtifact:
        if not is_plain_filename(descriptor.name):
            raise FetchFailed(descriptor.name, "name is not a plain file name; refusing to write outside the store")

        dest = self.local_path(descriptor)
        local = LocalArtifact(descriptor=descriptor, path=dest, present=dest.is_file())
        if local.present:
            logger.info("Artifact already present, skipping download: %s", dest)
            return local

        url = artifact_url(self.base_url, descriptor.name)
        if self.dry_run:
            logger.info("Would download %s -> %s", url, dest)
            return local

        logger.info("Downloading %s", url)
        self._download(url, dest, descriptor.name)
        local.mark_present()
        logger.info("Downloaded %s (%d bytes)", dest.name, dest.stat().st_size)
        return local

    def _download(self, url: str, dest: Path, name: str) -> None:
        tmp: Path | None = None
        try:
            self.store.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".part", dir=str(dest.parent))
            tmp = Path(tmp_name)
            request = urllib.request.Request(url, headers={"User-Agent": "langpack-provisioner"})
            with os.fdopen(fd, "wb") as out:
                with self._open(request, timeout=self.timeout) as response:  # type: ignore[attr-defined]
                    status = getattr(response, "status", 200)
                    if not 200 <= int(status) < 300:
                        raise FetchFailed(name, f"HTTP {status} from {url}")
                    shutil.copyfileobj(response, out, _CHUNK)
            os.replace(tmp, dest)
        except FetchFailed:
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise
        except (OSError, ValueError, http.client.HTTPException) as e:
            # urllib's HTTPError and URLError (incl. timeouts) are OSErrors.
            if tmp is not None:
                tmp.unlink(missing_ok=True)
            raise FetchFailed(name, e) from e

    def fetch_all(self, descriptors: Sequence[ArtifactDescriptor], *, workers: int = 1) -> List[FetchOutcome]:
        """Fetch every descriptor, returning outcomes in input order.

        Failures are returned, not raised. With ``workers > 1`` downloads run
        on a bounded thread pool; each worker writes only its own file.
        """

        def one(descriptor: ArtifactDescriptor) -> FetchOutcome:
            try:
                return self.fetch(descriptor)
            except FetchFailed as e:
                logger.warning("%s", e)
                return e

        if workers <= 1 or len(descriptors) <= 1:
            return [one(d) for d in descriptors]

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="fetch") as pool:
            return list(pool.map(one, descriptors))
