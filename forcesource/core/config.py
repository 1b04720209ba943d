import os
from typing import List, Optional

from pydantic import Field, field_validator

from forcesource.core.exceptions import (
    ConfigurationError,
    ForceSourceUsageError,
    InvalidProjectError,
)
from forcesource.utils.models import ForceSourceModel

PROJECT_FILE = "sfdx-project.json"
STATE_FOLDER = ".sfdx"
DEFAULT_API_VERSION = "52.0"


class PackageDirectory(ForceSourceModel):
    path: str
    default: bool = False
    package: Optional[str] = None

    @field_validator("path")
    @classmethod
    def strip_trailing_separator(cls, value):
        return value.rstrip("/\\")

    @property
    def name(self):
        return self.package or self.path


class ProjectConfig(ForceSourceModel):
    """The parts of sfdx-project.json that source conversion and tracking read."""

    package_directories: List[PackageDirectory] = Field(alias="packageDirectories")
    source_api_version: str = Field(DEFAULT_API_VERSION, alias="sourceApiVersion")
    namespace: str = ""

    @field_validator("package_directories")
    @classmethod
    def at_least_one_package(cls, value):
        if not value:
            raise ValueError("packageDirectories must list at least one directory")
        return value


class SfdxProject:
    """A project root together with its parsed sfdx-project.json."""

    def __init__(self, root: str, config: ProjectConfig):
        self.root = os.path.realpath(root)
        self.config = config

    @classmethod
    def load(cls, path: str = None) -> "SfdxProject":
        root = find_project_root(path or os.getcwd())
        try:
            config = ProjectConfig.parse_from_json(os.path.join(root, PROJECT_FILE))
        except ConfigurationError as e:
            raise InvalidProjectError(str(e)) from e
        return cls(root, config)

    @property
    def api_version(self) -> str:
        return self.config.source_api_version

    @property
    def package_directories(self) -> List[PackageDirectory]:
        return self.config.package_directories

    @property
    def default_package(self) -> PackageDirectory:
        for package_dir in self.package_directories:
            if package_dir.default:
                return package_dir
        return self.package_directories[0]

    def package_path(self, package_dir: PackageDirectory) -> str:
        return os.path.join(self.root, package_dir.path)

    @property
    def default_package_path(self) -> str:
        return self.package_path(self.default_package)

    @property
    def package_paths(self) -> List[str]:
        return [self.package_path(p) for p in self.package_directories]

    def org_state_dir(self, username: str) -> str:
        return os.path.join(self.root, STATE_FOLDER, "orgs", username)


def find_project_root(start: str) -> str:
    """Walk up from ``start`` until a directory holding sfdx-project.json is found."""
    current = os.path.realpath(start)
    while True:
        if os.path.isfile(os.path.join(current, PROJECT_FILE)):
            return current
        parent = os.path.dirname(current)
        if parent == current:
            raise InvalidProjectError(
                f"No {PROJECT_FILE} found in {start} or any parent directory."
            )
        current = parent


class OrgConfig(ForceSourceModel):
    """Connection details for one org."""

    username: str
    instance_url: Optional[str] = None
    access_token: Optional[str] = None
    api_version: str = DEFAULT_API_VERSION

    @classmethod
    def from_env(cls, username: str = None, api_version: str = None) -> "OrgConfig":
        username = username or os.environ.get("FORCESOURCE_USERNAME")
        if not username:
            raise ForceSourceUsageError(
                "No target org. Pass --username or set FORCESOURCE_USERNAME."
            )
        return cls(
            username=username,
            instance_url=os.environ.get("FORCESOURCE_INSTANCE_URL"),
            access_token=os.environ.get("FORCESOURCE_ACCESS_TOKEN"),
            api_version=api_version or DEFAULT_API_VERSION,
        )

    @property
    def can_connect(self) -> bool:
        return bool(self.instance_url and self.access_token)
