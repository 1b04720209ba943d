from urllib.parse import urlparse

import simple_salesforce
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from forcesource import __version__
from forcesource.core.exceptions import ForceSourceUsageError

CALL_OPTS_HEADER_KEY = "Sforce-Call-Options"


def get_simple_salesforce_connection(org_config, api_version=None, base_url: str = None):
    if not org_config.can_connect:
        raise ForceSourceUsageError(
            f"No connection details for {org_config.username}. "
            "Set FORCESOURCE_INSTANCE_URL and FORCESOURCE_ACCESS_TOKEN."
        )

    # Retry on transient gateway errors
    retries = Retry(total=5, status_forcelist=(502, 503, 504), backoff_factor=0.3)
    adapter = HTTPAdapter(max_retries=retries)

    # Attempt to get the host and port from the URL
    instance_url = urlparse(org_config.instance_url)
    instance = instance_url.hostname
    port = instance_url.port

    if port:
        instance = f"{instance}:{port}"

    sf = simple_salesforce.Salesforce(
        instance=instance,
        session_id=org_config.access_token,
        version=api_version or org_config.api_version,
    )
    sf.headers.setdefault(CALL_OPTS_HEADER_KEY, f"client=forcesource/{__version__}")
    sf.session.mount("http://", adapter)
    sf.session.mount("https://", adapter)

    if base_url:
        base_url = base_url.strip("/") + "/"  # exactly one trailing slash and no leading slashes
        sf.base_url += base_url

    return sf
