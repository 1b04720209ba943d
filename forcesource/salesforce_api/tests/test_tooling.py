import pytest
import responses
from simple_salesforce.exceptions import SalesforceMalformedRequest

from forcesource.core.config import OrgConfig
from forcesource.core.exceptions import AccessError, ForceSourceUsageError
from forcesource.salesforce_api.tooling import ToolingClient, to_access_error
from forcesource.salesforce_api.utils import CALL_OPTS_HEADER_KEY, get_simple_salesforce_connection

QUERY_URL = "https://test.my.salesforce.com/services/data/v50.0/tooling/query/"


def test_to_access_error():
    error = SalesforceMalformedRequest(
        QUERY_URL,
        400,
        "query",
        [
            {"errorCode": "INVALID_TYPE", "message": "No such column."},
            {"errorCode": "INVALID_TYPE", "message": "Another problem."},
        ],
    )
    access_error = to_access_error(error)
    assert access_error.error_code == "INVALID_TYPE"
    assert str(access_error) == "No such column.; Another problem."


def test_to_access_error__unstructured_content():
    error = SalesforceMalformedRequest(QUERY_URL, 400, "query", "Bad request")
    access_error = to_access_error(error)
    assert access_error.error_code is None
    assert str(access_error) == str(error)


@responses.activate
def test_query_all(org_config):
    responses.add(
        method=responses.GET,
        url=QUERY_URL,
        json={"totalSize": 1, "done": True, "records": [{"Id": "0Ax"}]},
    )
    result = ToolingClient(org_config).query_all("SELECT Id FROM SourceMember")
    assert result["records"] == [{"Id": "0Ax"}]
    assert CALL_OPTS_HEADER_KEY in responses.calls[0].request.headers


@responses.activate
def test_query_all__error(org_config):
    responses.add(
        method=responses.GET,
        url=QUERY_URL,
        status=400,
        json=[{"errorCode": "INVALID_FIELD", "message": "No such column 'Nope'."}],
    )
    with pytest.raises(AccessError) as e:
        ToolingClient(org_config).query_all("SELECT Nope FROM SourceMember")
    assert e.value.error_code == "INVALID_FIELD"


def test_with_api_version(org_config):
    client = ToolingClient(org_config)
    assert client.api_version == "50.0"
    assert client.with_api_version("50.0") is client
    upgraded = client.with_api_version("52.0")
    assert upgraded.api_version == "52.0"
    assert upgraded.org_config is org_config


def test_connection(org_config):
    sf = get_simple_salesforce_connection(org_config, base_url="/tooling")
    assert sf.base_url == "https://test.my.salesforce.com/services/data/v50.0/tooling/"
    assert sf.headers[CALL_OPTS_HEADER_KEY].startswith("client=forcesource/")


def test_connection__port():
    org_config = OrgConfig(
        username="test@example.com",
        instance_url="https://localhost:8443",
        access_token="TOKEN",
        api_version="50.0",
    )
    sf = get_simple_salesforce_connection(org_config)
    assert sf.base_url == "https://localhost:8443/services/data/v50.0/"


def test_connection__no_credentials():
    with pytest.raises(ForceSourceUsageError):
        get_simple_salesforce_connection(OrgConfig(username="test@example.com"))
