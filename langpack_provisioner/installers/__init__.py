from .appx import AppPackageInstaller
from .cab import CabPackageInstaller
from .dispatch import InstallerDispatch
from .silent import SilentInstaller

__all__ = [
    "AppPackageInstaller",
    "CabPackageInstaller",
    "InstallerDispatch",
    "SilentInstaller",
]
