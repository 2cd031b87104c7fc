from __future__ import annotations

import urllib.error
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest

from langpack_provisioner.config import ProvisionConfig
from langpack_provisioner.errors import InstallFailed

BASE_URL = "https://files.example.org/langpacks"


class FakeResponse:
    def __init__(self, chunks: Sequence[bytes], *, fail_after: Optional[int] = None, status: int = 200) -> None:
        self._chunks = list(chunks)
        self._fail_after = fail_after
        self._reads = 0
        self.status = status

    def read(self, size: int = -1) -> bytes:
        if self._fail_after is not None and self._reads >= self._fail_after:
            raise ConnectionResetError("connection reset mid-transfer")
        self._reads += 1
        if not self._chunks:
            return b""
        return self._chunks.pop(0)

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc) -> None:
        return None


class FakeOpener:
    """Stands in for urllib.request.urlopen, keyed by the last URL segment."""

    def __init__(self, files: Optional[Dict[str, bytes]] = None) -> None:
        self.files = dict(files or {})
        self.interrupted: set[str] = set()
        self.calls: List[str] = []

    def __call__(self, request, timeout: float = 0):
        url = request.full_url if hasattr(request, "full_url") else str(request)
        self.calls.append(url)
        name = url.rsplit("/", 1)[-1]
        if name not in self.files and name not in self.interrupted:
            raise urllib.error.HTTPError(url, 404, "Not Found", hdrs=None, fp=None)
        if name in self.interrupted:
            return FakeResponse([b"partial-bytes"], fail_after=1)
        return FakeResponse([self.files[name]])


class FakeNative:
    """In-memory NativeInstaller. Successful installs register the package."""

    def __init__(self) -> None:
        self.package_states: Dict[str, str] = {}
        self.app_packages: List[str] = []
        self.add_package_rc: Dict[str, int] = {}
        self.unregistered_after_install: set[str] = set()
        self.app_errors: Dict[str, str] = {}
        self.installer_rc: Dict[str, int] = {}
        self.calls: List[Tuple[str, str]] = []

    def package_state(self, display_name: str) -> Optional[str]:
        self.calls.append(("package_state", display_name))
        return self.package_states.get(display_name)

    def add_package(self, path: Path, log_path: Path) -> int:
        self.calls.append(("add_package", path.name))
        rc = self.add_package_rc.get(path.name, 0)
        if rc == 0 and path.name not in self.unregistered_after_install:
            self.package_states[path.name.rsplit(".", 1)[0]] = "Installed"
        return rc

    def app_package_installed(self, family: str, display_name: str) -> bool:
        self.calls.append(("app_package_installed", display_name))
        return display_name in self.app_packages

    def add_app_package(self, path: Path) -> None:
        self.calls.append(("add_app_package", path.name))
        if path.name in self.app_errors:
            raise InstallFailed(path.name, self.app_errors[path.name])
        self.app_packages.append(path.name.rsplit(".", 1)[0])

    def run_installer(self, path: Path, args: Sequence[str]) -> int:
        self.calls.append(("run_installer", path.name))
        return self.installer_rc.get(path.name, 0)

    def installs(self) -> List[str]:
        return [name for op, name in self.calls if op in {"add_package", "add_app_package", "run_installer"}]


@pytest.fixture
def native() -> FakeNative:
    return FakeNative()


@pytest.fixture
def opener() -> FakeOpener:
    return FakeOpener()


@pytest.fixture
def store(tmp_path: Path) -> Path:
    p = tmp_path / "store"
    p.mkdir()
    return p


@pytest.fixture
def config(tmp_path: Path, store: Path) -> ProvisionConfig:
    return ProvisionConfig(
        raw={
            "base_url": BASE_URL,
            "store_dir": str(store),
            "log_path": str(tmp_path / "logs" / "provision.log"),
            "state_path": str(tmp_path / "state.json"),
            "timeout_s": 5,
        }
    )
