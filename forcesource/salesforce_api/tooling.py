import logging

from simple_salesforce.exceptions import SalesforceError

from forcesource.core.exceptions import AccessError
from forcesource.salesforce_api.utils import get_simple_salesforce_connection

logger = logging.getLogger(__name__)


def to_access_error(e: SalesforceError) -> AccessError:
    content = e.content if isinstance(e.content, list) else []
    errors = [error for error in content if isinstance(error, dict)]
    error_code = errors[0].get("errorCode") if errors else None
    message = "; ".join(error.get("message", "Unknown.") for error in errors) or str(e)
    return AccessError(message, error_code=error_code)


class ToolingClient:
    """Tooling API queries against one org.

    Refused queries surface as ``AccessError`` whose ``error_code`` carries
    the org's error code (``INVALID_TYPE``, ``ACCESS_DENIED``...).
    """

    def __init__(self, org_config, api_version=None, sf=None):
        self.org_config = org_config
        self.api_version = api_version or org_config.api_version
        self._sf = sf

    @property
    def sf(self):
        if self._sf is None:
            self._sf = get_simple_salesforce_connection(
                self.org_config, api_version=self.api_version, base_url="tooling"
            )
        return self._sf

    def with_api_version(self, api_version) -> "ToolingClient":
        if api_version == self.api_version:
            return self
        return ToolingClient(self.org_config, api_version=api_version)

    def query_all(self, soql) -> dict:
        logger.debug(soql)
        try:
            return self.sf.query_all(soql)
        except SalesforceError as e:
            raise to_access_error(e) from e
