"""Cluster management interface and its HTTP gateway implementation."""

import os
from typing import Any, Dict, Iterable, Optional, Protocol

import requests

from fabricdeployer.errors import (
    ClusterUnreachableError,
    MalformedDocumentError,
    ManagementOperationFailedError,
)
from fabricdeployer.errors_catalog import actionable_error
from fabricdeployer.models import (
    ApplicationManifest,
    AttributeMap,
    Connection,
    OverwriteBehavior,
)
from fabricdeployer.services.application_package import (
    APPLICATION_MANIFEST_FILE,
    missing_package_content,
    read_application_manifest,
    read_application_parameters,
)

SECURITY_TOKEN_KEY = "SecurityToken"
DEFAULT_ENDPOINT = "localhost:19080"
APPLICATION_SCHEME = "fabric:/"
SECURE_FLAGS = ("X509Credential", "AzureActiveDirectory")


class ClusterManagementClient(Protocol):
    """Operations the deployer needs from the cluster management API."""

    def connect(self, parameters: AttributeMap) -> Connection:
        ...

    def existing_connection(self) -> Connection:
        ...

    def create_application(
        self,
        connection: Connection,
        package_path: str,
        parameter_file_path: Optional[str],
        parameter_overrides: Dict[str, str],
        overwrite_behavior: OverwriteBehavior,
        skip_validation: bool,
    ) -> None:
        ...

    def register_application_type(
        self,
        connection: Connection,
        package_path: str,
        overwrite_behavior: OverwriteBehavior,
        skip_validation: bool,
    ) -> None:
        ...


def application_id(name: str) -> str:
    """`fabric:/a/b` becomes `a~b` in gateway URLs."""
    if name.startswith(APPLICATION_SCHEME):
        name = name[len(APPLICATION_SCHEME):]
    return name.replace("/", "~")


def default_application_name(type_name: str) -> str:
    base = type_name[: -len("Type")] if type_name.endswith("Type") and len(type_name) > 4 else type_name
    return f"{APPLICATION_SCHEME}{base}"


class RestClusterClient:
    """Talks to the cluster's HTTP management gateway."""

    API_VERSION = "6.0"
    PROVISION_API_VERSION = "6.2"
    CLUSTER_VERSION_API_VERSION = "6.4"

    def __init__(
        self,
        logger,
        request_timeout: float = 60.0,
        default_endpoint: str = DEFAULT_ENDPOINT,
        requests_module=requests,
    ):
        self.logger = logger
        self.request_timeout = request_timeout
        self.default_endpoint = default_endpoint
        self.requests = requests_module

    def build_connection(self, parameters: AttributeMap) -> Connection:
        raw_endpoint = (
            parameters.get_str("HttpGatewayEndpoint")
            or parameters.get_str("ConnectionEndpoint")
            or self.default_endpoint
        )
        # Only the first endpoint of a comma-separated list is used.
        raw_endpoint = raw_endpoint.split(",")[0].strip()

        token = parameters.get_str(SECURITY_TOKEN_KEY)
        secure = bool(token) or any(parameters.get_bool(flag) for flag in SECURE_FLAGS)
        if "://" in raw_endpoint:
            endpoint = raw_endpoint.rstrip("/")
        else:
            scheme = "https" if secure else "http"
            endpoint = f"{scheme}://{raw_endpoint}"

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        return Connection(endpoint=endpoint, parameters=parameters, headers=headers)

    def connect(self, parameters: AttributeMap) -> Connection:
        connection = self.build_connection(parameters)
        self.logger.info("Connecting to cluster at %s", connection.endpoint)

        try:
            response = self.requests.request(
                "GET",
                f"{connection.endpoint}/$/GetClusterVersion",
                params={"api-version": self.CLUSTER_VERSION_API_VERSION},
                headers=connection.headers,
                timeout=self.request_timeout,
            )
        except self.requests.RequestException as exc:
            raise ClusterUnreachableError(
                actionable_error("cluster_unreachable", endpoint=connection.endpoint, reason=str(exc))
            ) from exc

        if response.status_code >= 400:
            raise ClusterUnreachableError(
                actionable_error(
                    "cluster_unreachable",
                    endpoint=connection.endpoint,
                    reason=self._error_message(response),
                )
            )

        self.logger.debug("Cluster version: %s", self._json(response).get("Version", "<unknown>"))
        return connection

    def existing_connection(self) -> Connection:
        return self.build_connection(AttributeMap())

    def create_application(
        self,
        connection: Connection,
        package_path: str,
        parameter_file_path: Optional[str],
        parameter_overrides: Dict[str, str],
        overwrite_behavior: OverwriteBehavior,
        skip_validation: bool,
    ) -> None:
        manifest = read_application_manifest(package_path)
        if not skip_validation:
            self.validate_package(package_path, manifest)

        app_parameters = read_application_parameters(parameter_file_path)
        name = app_parameters.name or default_application_name(manifest.type_name)
        parameters = dict(app_parameters.parameters)
        parameters.update(parameter_overrides)

        existing = self.get_application(connection, name)
        if existing is not None:
            self._resolve_existing_application(connection, name, existing, manifest, overwrite_behavior)

        if self.is_type_registered(connection, manifest):
            self.logger.info(
                "Application type %s %s is already registered; reusing it.",
                manifest.type_name,
                manifest.type_version,
            )
        else:
            self._upload_and_provision(connection, package_path, manifest)

        self.logger.info("Creating application %s (%s %s)", name, manifest.type_name, manifest.type_version)
        self._request(
            connection,
            "POST",
            "/Applications/$/Create",
            json={
                "Name": name,
                "TypeName": manifest.type_name,
                "TypeVersion": manifest.type_version,
                "ParameterList": [
                    {"Key": key, "Value": value} for key, value in sorted(parameters.items())
                ],
            },
        )

    def register_application_type(
        self,
        connection: Connection,
        package_path: str,
        overwrite_behavior: OverwriteBehavior,
        skip_validation: bool,
    ) -> None:
        manifest = read_application_manifest(package_path)
        if not skip_validation:
            self.validate_package(package_path, manifest)

        if self.is_type_registered(connection, manifest):
            if overwrite_behavior == OverwriteBehavior.NEVER:
                raise ManagementOperationFailedError(
                    f"Application type {manifest.type_name} {manifest.type_version} is already "
                    "registered and overwrite behavior is Never."
                )
            self.logger.info(
                "Unregistering existing application type %s %s",
                manifest.type_name,
                manifest.type_version,
            )
            self._request(
                connection,
                "POST",
                f"/ApplicationTypes/{manifest.type_name}/$/Unprovision",
                json={"ApplicationTypeVersion": manifest.type_version},
            )

        self._upload_and_provision(connection, package_path, manifest)

    def validate_package(self, package_path: str, manifest: ApplicationManifest):
        self.logger.debug("Validating application package %s", package_path)
        missing = missing_package_content(package_path, manifest)
        if missing:
            raise MalformedDocumentError(
                actionable_error(
                    "malformed_document",
                    path=os.path.join(package_path, APPLICATION_MANIFEST_FILE),
                    reason="service packages missing from the application package: " + ", ".join(missing),
                )
            )

    def get_application(self, connection: Connection, name: str) -> Optional[Dict[str, Any]]:
        response = self._request(
            connection,
            "GET",
            f"/Applications/{application_id(name)}",
            allow_statuses=(404,),
        )
        if response.status_code in (204, 404):
            return None
        return self._json(response)

    def is_type_registered(self, connection: Connection, manifest: ApplicationManifest) -> bool:
        response = self._request(
            connection,
            "GET",
            f"/ApplicationTypes/{manifest.type_name}",
            params={"ApplicationTypeVersion": manifest.type_version},
            allow_statuses=(404,),
        )
        if response.status_code in (204, 404):
            return False
        items = self._json(response).get("Items", [])
        return any(item.get("Version") == manifest.type_version for item in items)

    def _resolve_existing_application(
        self,
        connection: Connection,
        name: str,
        existing: Dict[str, Any],
        manifest: ApplicationManifest,
        overwrite_behavior: OverwriteBehavior,
    ):
        existing_type = existing.get("TypeName")
        existing_version = existing.get("TypeVersion")

        if overwrite_behavior == OverwriteBehavior.NEVER:
            raise ManagementOperationFailedError(
                f"Application {name} already exists ({existing_type} {existing_version}) "
                "and overwrite behavior is Never."
            )

        if overwrite_behavior == OverwriteBehavior.SAME_TYPE_AND_VERSION and (
            existing_type != manifest.type_name or existing_version != manifest.type_version
        ):
            raise ManagementOperationFailedError(
                f"Application {name} already exists as {existing_type} {existing_version}, "
                f"which differs from {manifest.type_name} {manifest.type_version}; "
                "overwrite behavior SameTypeAndVersion only replaces an identical type and version."
            )

        self.logger.info("Removing existing application %s (%s %s)", name, existing_type, existing_version)
        self._request(connection, "POST", f"/Applications/{application_id(name)}/$/Delete")

    def _upload_and_provision(self, connection: Connection, package_path: str, manifest: ApplicationManifest):
        store_root = manifest.type_name
        self.logger.info("Copying package %s to image store path %s", package_path, store_root)
        for relative_path in self._package_files(package_path):
            with open(os.path.join(package_path, relative_path), "rb") as file_obj:
                self._request(
                    connection,
                    "PUT",
                    f"/ImageStore/{store_root}/{relative_path}",
                    data=file_obj.read(),
                )

        self.logger.info("Registering application type %s %s", manifest.type_name, manifest.type_version)
        self._request(
            connection,
            "POST",
            "/ApplicationTypes/$/Provision",
            api_version=self.PROVISION_API_VERSION,
            json={"Kind": "ImageStorePath", "ApplicationTypeBuildPath": store_root, "Async": False},
        )

        self.logger.debug("Removing %s from the image store", store_root)
        self._request(connection, "DELETE", f"/ImageStore/{store_root}", allow_statuses=(404,))

    @staticmethod
    def _package_files(package_path: str) -> Iterable[str]:
        for current_root, _dirs, files in sorted(os.walk(package_path)):
            for file_name in sorted(files):
                full_path = os.path.join(current_root, file_name)
                yield os.path.relpath(full_path, package_path).replace(os.sep, "/")

    def _request(
        self,
        connection: Connection,
        method: str,
        path: str,
        api_version: Optional[str] = None,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[bytes] = None,
        allow_statuses: Iterable[int] = (),
    ):
        query = {"api-version": api_version or self.API_VERSION}
        query.update(params or {})
        url = f"{connection.endpoint}{path}"
        self.logger.debug("%s %s", method, url)

        try:
            response = self.requests.request(
                method,
                url,
                params=query,
                headers=connection.headers,
                json=json,
                data=data,
                timeout=self.request_timeout,
            )
        except self.requests.RequestException as exc:
            raise ManagementOperationFailedError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400 and response.status_code not in allow_statuses:
            raise ManagementOperationFailedError(self._error_message(response))
        return response

    @staticmethod
    def _json(response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _error_message(self, response) -> str:
        error = self._json(response).get("Error")
        if isinstance(error, dict) and error.get("Message"):
            code = error.get("Code")
            return f"{code}: {error['Message']}" if code else error["Message"]
        text = (getattr(response, "text", "") or "").strip()
        return f"HTTP {response.status_code}" + (f": {text}" if text else "")
