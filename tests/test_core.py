import json

import pytest

from fabricdeployer.core import DeployerError, FabricDeployer
from fabricdeployer.errors import ClusterUnreachableError, ManagementOperationFailedError
from fabricdeployer.models import Connection, OverwriteBehavior


class FakeClusterClient:
    def __init__(self, fail_on=None, connect_error=None):
        self.fail_on = fail_on
        self.connect_error = connect_error
        self.calls = []

    def connect(self, parameters):
        self.calls.append(("connect", parameters.to_dict()))
        if self.connect_error:
            raise self.connect_error
        return Connection(endpoint="http://cluster:19080", parameters=parameters)

    def existing_connection(self):
        return Connection(endpoint="http://localhost:19080")

    def create_application(
        self,
        connection,
        package_path,
        parameter_file_path,
        parameter_overrides,
        overwrite_behavior,
        skip_validation,
    ):
        self.calls.append(("create", package_path, parameter_file_path, parameter_overrides))
        self._maybe_fail(len(self.calls))

    def register_application_type(self, connection, package_path, overwrite_behavior, skip_validation):
        self.calls.append(("register", package_path, overwrite_behavior, skip_validation))
        self._maybe_fail(len(self.calls))

    def _maybe_fail(self, call_number):
        if self.fail_on == call_number:
            raise ManagementOperationFailedError("Application type already registered with different content")


@pytest.fixture
def workspace(tmp_path):
    profiles_dir = tmp_path / "Admin" / "PublishProfiles"
    profiles_dir.mkdir(parents=True)
    (profiles_dir / "Local.5Node.xml").write_text(
        '<PublishProfile xmlns="http://schemas.microsoft.com/2015/05/fabrictools">'
        "<ClusterConnectionParameters />"
        '<ApplicationParameterFile Path="..\\ApplicationParameters\\Local.5Node.xml" />'
        "</PublishProfile>",
        encoding="utf-8",
    )
    return tmp_path


def build_deployer(workspace, client, **kwargs):
    options = {
        "root": str(workspace),
        "use_existing_cluster_connection": True,
        "report_file": str(workspace / "output" / "deploy-report.json"),
        "client": client,
    }
    options.update(kwargs)
    return FabricDeployer(**options)


def read_report(workspace):
    return json.loads((workspace / "output" / "deploy-report.json").read_text(encoding="utf-8"))


def test_reused_connection_issues_three_calls_in_order(workspace):
    client = FakeClusterClient()

    exit_code = build_deployer(workspace, client, parameters={"TenantName": "contoso"}).run()

    assert exit_code == 0
    assert [call[0] for call in client.calls] == ["create", "register", "register"]
    assert client.calls[0] == (
        "create",
        str(workspace / "Admin" / "pkg" / "Debug"),
        str(workspace / "Admin" / "ApplicationParameters" / "Local.5Node.xml"),
        {"TenantName": "contoso"},
    )
    assert client.calls[1][1] == str(workspace / "Ingestion" / "pkg" / "Debug")
    assert client.calls[2][1] == str(workspace / "Tenant" / "pkg" / "Debug")
    assert client.calls[1][2] == OverwriteBehavior.SAME_TYPE_AND_VERSION

    report = read_report(workspace)
    assert report["status"] == "success"
    assert report["connection"] == {"endpoint": "http://localhost:19080", "reused": True}
    assert [operation["status"] for operation in report["operations"]] == ["success"] * 3


def test_failure_in_second_operation_stops_the_run(workspace):
    client = FakeClusterClient(fail_on=2)

    exit_code = build_deployer(workspace, client).run()

    assert exit_code == 1
    assert [call[0] for call in client.calls] == ["create", "register"]

    report = read_report(workspace)
    assert report["status"] == "failed"
    assert "Ingestion" in report["error"]
    assert "different content" in report["error"]
    assert [operation["status"] for operation in report["operations"]] == ["success", "failed", "pending"]


def test_fresh_connection_is_established_once_before_operations(workspace):
    client = FakeClusterClient()

    exit_code = build_deployer(
        workspace,
        client,
        use_existing_cluster_connection=False,
        security_token="secret",
        configuration="Release",
    ).run()

    assert exit_code == 0
    assert client.calls[0] == ("connect", {"SecurityToken": "secret"})
    assert [call[0] for call in client.calls[1:]] == ["create", "register", "register"]
    assert client.calls[1][1] == str(workspace / "Admin" / "pkg" / "Release")


def test_unreachable_cluster_aborts_before_any_operation(workspace):
    client = FakeClusterClient(connect_error=ClusterUnreachableError("connection refused"))

    exit_code = build_deployer(workspace, client, use_existing_cluster_connection=False).run()

    assert exit_code == 1
    assert [call[0] for call in client.calls] == ["connect"]
    assert read_report(workspace)["status"] == "failed"


def test_missing_profile_fails_without_contacting_cluster(workspace):
    client = FakeClusterClient()

    exit_code = build_deployer(workspace, client, profile="Cloud").run()

    assert exit_code == 1
    assert client.calls == []
    assert "Cloud.xml" in read_report(workspace)["error"]


def test_dry_run_plans_without_contacting_cluster(workspace):
    client = FakeClusterClient()

    exit_code = build_deployer(workspace, client, dry_run=True, use_existing_cluster_connection=False).run()

    assert exit_code == 0
    assert client.calls == []
    report = read_report(workspace)
    assert report["status"] == "dry_run"
    assert [operation["target"] for operation in report["operations"]] == ["Admin", "Ingestion", "Tenant"]


def test_invalid_overwrite_behavior_is_rejected(workspace):
    with pytest.raises(DeployerError, match="Invalid overwrite behavior"):
        build_deployer(workspace, FakeClusterClient(), overwrite_behavior="Sometimes")
