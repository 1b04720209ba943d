import os
from typing import List, Optional

from forcesource.core.config import SfdxProject


class PackageInfo:
    """Which package directory a path belongs to, and which one is active.

    One instance is created per command invocation and passed around
    with the rest of the ``SourceContext``.
    """

    def __init__(self, project: SfdxProject):
        self.project = project
        self.active_package: Optional[str] = None
        self._paths = {
            package_dir.name: project.package_path(package_dir)
            for package_dir in project.package_directories
        }

    @property
    def package_names(self) -> List[str]:
        return list(self._paths)

    @property
    def package_paths(self) -> List[str]:
        return list(self._paths.values())

    @property
    def default_package_name(self) -> str:
        return self.project.default_package.name

    def get_package_path(self, package_name) -> Optional[str]:
        return self._paths.get(package_name)

    def get_package_name_from_source_path(self, source_path) -> Optional[str]:
        """Return the package whose directory holds ``source_path``.

        Nested package directories resolve to the deepest match."""
        source_path = os.path.abspath(source_path)
        best = None
        best_length = -1
        for name, package_path in self._paths.items():
            if source_path == package_path or source_path.startswith(
                os.path.join(package_path, "")
            ):
                if len(package_path) > best_length:
                    best, best_length = name, len(package_path)
        return best

    def set_active_package(self, package_name):
        self.active_package = package_name

    def set_active_package_from_source_path(self, source_path):
        self.active_package = self.get_package_name_from_source_path(source_path)

    @property
    def active_package_path(self) -> str:
        return self.get_package_path(self.active_package or self.default_package_name)

    def translate_to_package(self, source_path, package_name) -> str:
        """Move ``source_path`` from its own package into ``package_name``."""
        own_package = self.get_package_name_from_source_path(source_path)
        if own_package is None:
            return source_path
        relative = os.path.relpath(
            os.path.abspath(source_path), self.get_package_path(own_package)
        )
        return os.path.join(self.get_package_path(package_name), relative)
