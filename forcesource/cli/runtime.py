import functools
from logging import getLogger
from typing import Optional

import click

from forcesource.core.config import OrgConfig, SfdxProject
from forcesource.core.context import SourceContext
from forcesource.core.exceptions import InvalidProjectError
from forcesource.salesforce_api.tooling import ToolingClient
from forcesource.tracking.max_revision import MaxRevision

logger = getLogger(__name__)


class CliRuntime:
    """The project and org a command runs against, loaded on first use."""

    def __init__(self, project_dir=None):
        self.project_dir = project_dir
        self._project: Optional[SfdxProject] = None
        self.project_error: Optional[InvalidProjectError] = None
        try:
            self._project = SfdxProject.load(project_dir)
        except InvalidProjectError as e:
            self.project_error = e

    @property
    def project(self) -> SfdxProject:
        if self._project is None:
            raise self.project_error
        return self._project

    def get_context(self, username=None, require_org=False) -> SourceContext:
        org_config = None
        if require_org or username:
            org_config = OrgConfig.from_env(username, api_version=self.project.api_version)
        return SourceContext(self.project, org_config=org_config)

    def get_max_revision(self, context: SourceContext) -> MaxRevision:
        tooling = ToolingClient(context.org_config, api_version=context.api_version)
        return context.cache.get_max_revision(context.username, tooling)


def pass_runtime(func=None, require_project=True):
    """Decorator which passes the forcesource runtime object as the first arg to a click command."""

    def decorate(func):
        @click.pass_context
        def new_func(ctx, *args, **kw):
            runtime = ctx.obj
            if require_project and runtime.project_error is not None:
                raise runtime.project_error
            func(runtime, *args, **kw)

        return functools.update_wrapper(new_func, func)

    if func is None:
        return decorate
    else:
        return decorate(func)
