"""Readers for application package manifests and parameter files."""

import os
from typing import Dict, List, Optional

from fabricdeployer.errors import MalformedDocumentError
from fabricdeployer.errors_catalog import actionable_error
from fabricdeployer.models import ApplicationManifest, ApplicationParameters
from fabricdeployer.services.profile_reader import find_child, find_children, parse_document

APPLICATION_MANIFEST_FILE = "ApplicationManifest.xml"


def _require_file(path: str):
    if not os.path.isfile(path):
        raise MalformedDocumentError(
            actionable_error("malformed_document", path=path, reason="file does not exist")
        )


def read_application_manifest(package_path: str) -> ApplicationManifest:
    manifest_path = os.path.join(package_path, APPLICATION_MANIFEST_FILE)
    _require_file(manifest_path)
    root = parse_document(manifest_path, "ApplicationManifest")

    type_name = root.get("ApplicationTypeName")
    type_version = root.get("ApplicationTypeVersion")
    if not type_name or not type_version:
        raise MalformedDocumentError(
            actionable_error(
                "malformed_document",
                path=manifest_path,
                reason="ApplicationTypeName and ApplicationTypeVersion are required",
            )
        )

    service_manifests: List[str] = []
    for import_element in find_children(root, "ServiceManifestImport"):
        ref = find_child(import_element, "ServiceManifestRef")
        if ref is not None and ref.get("ServiceManifestName"):
            service_manifests.append(ref.get("ServiceManifestName"))

    return ApplicationManifest(
        type_name=type_name,
        type_version=type_version,
        service_manifests=service_manifests,
    )


def read_application_parameters(parameter_file_path: Optional[str]) -> ApplicationParameters:
    if not parameter_file_path:
        return ApplicationParameters(name=None)

    _require_file(parameter_file_path)
    root = parse_document(parameter_file_path, "Application")

    parameters: Dict[str, str] = {}
    parameters_element = find_child(root, "Parameters")
    if parameters_element is not None:
        for parameter in find_children(parameters_element, "Parameter"):
            name = parameter.get("Name")
            if not name:
                raise MalformedDocumentError(
                    actionable_error(
                        "malformed_document",
                        path=parameter_file_path,
                        reason="Parameter element without a Name attribute",
                    )
                )
            parameters[name] = parameter.get("Value", "")

    return ApplicationParameters(name=root.get("Name") or None, parameters=parameters)


def missing_package_content(package_path: str, manifest: ApplicationManifest) -> List[str]:
    """Service manifest directories referenced by the application but absent from the package."""
    return [
        name
        for name in manifest.service_manifests
        if not os.path.isdir(os.path.join(package_path, name))
    ]
