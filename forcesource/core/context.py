"""Per-invocation state shared by the convert and tracking operations.

Nothing here is a process global: a command builds one ``SourceContext``
and passes it down.
"""
import logging
from typing import Dict, Optional

from forcesource.core.config import OrgConfig, SfdxProject
from forcesource.metadata.registry import MetadataRegistry
from forcesource.metadata.types import MetadataTypeFactory
from forcesource.tracking.forceignore import ForceIgnore
from forcesource.tracking.max_revision import MaxRevision
from forcesource.tracking.nondecomposed_index import NonDecomposedElementsIndex
from forcesource.tracking.package_info import PackageInfo

logger = logging.getLogger(__name__)


class UsernameCache:
    """``MaxRevision`` and ``NonDecomposedElementsIndex`` instances keyed by username."""

    def __init__(self, context: "SourceContext"):
        self.context = context
        self._max_revisions: Dict[str, MaxRevision] = {}
        self._nondecomposed_indexes: Dict[str, NonDecomposedElementsIndex] = {}

    def get_max_revision(self, username, tooling) -> MaxRevision:
        if username not in self._max_revisions:
            self._max_revisions[username] = MaxRevision(self.context.project, username, tooling)
        return self._max_revisions[username]

    def get_nondecomposed_index(self, username) -> NonDecomposedElementsIndex:
        if username not in self._nondecomposed_indexes:
            self._nondecomposed_indexes[username] = NonDecomposedElementsIndex(
                self.context.project,
                username,
                self.context.registry,
                self.context.package_info,
                max_revision=self._max_revisions.get(username),
            )
        return self._nondecomposed_indexes[username]

    def clear(self, username=None):
        if username is None:
            self._max_revisions.clear()
            self._nondecomposed_indexes.clear()
        else:
            self._max_revisions.pop(username, None)
            self._nondecomposed_indexes.pop(username, None)


class SourceContext:
    def __init__(
        self,
        project: SfdxProject,
        registry: MetadataRegistry = None,
        org_config: Optional[OrgConfig] = None,
    ):
        self.project = project
        self.registry = registry or MetadataRegistry()
        self.package_info = PackageInfo(project)
        self.forceignore = ForceIgnore(project.root)
        self.type_factory = MetadataTypeFactory(self.registry)
        self.org_config = org_config
        self.cache = UsernameCache(self)

    @classmethod
    def load(cls, path=None, org_config=None) -> "SourceContext":
        return cls(SfdxProject.load(path), org_config=org_config)

    @property
    def username(self) -> Optional[str]:
        return self.org_config.username if self.org_config else None

    @property
    def api_version(self) -> str:
        return self.project.api_version
