"""Publish profile document reader."""

import os
import xml.etree.ElementTree as ET
from typing import Dict, Optional

from fabricdeployer.errors import (
    MalformedDocumentError,
    ProfileNotFoundError,
)
from fabricdeployer.errors_catalog import actionable_error
from fabricdeployer.models import (
    AttributeMap,
    AttributeValue,
    BoolValue,
    PublishProfile,
    StringValue,
    UpgradeDeployment,
    UpgradeMode,
)

PROFILES_DIR = "PublishProfiles"
PROFILE_EXTENSION = ".xml"


def local_name(tag: str) -> str:
    """Strip the `{namespace}` prefix ElementTree puts on qualified tags."""
    return tag.rsplit("}", 1)[-1]


def find_child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if local_name(child.tag) == name:
            return child
    return None


def find_children(element: ET.Element, name: str):
    return [child for child in element if local_name(child.tag) == name]


def parse_document(path: str, root_name: str) -> ET.Element:
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as exc:
        raise MalformedDocumentError(
            actionable_error("malformed_document", path=path, reason=str(exc))
        ) from exc

    if local_name(root.tag) != root_name:
        raise MalformedDocumentError(
            actionable_error(
                "malformed_document",
                path=path,
                reason=f"expected root element '{root_name}', found '{local_name(root.tag)}'",
            )
        )
    return root


def parse_bool(raw: str) -> Optional[bool]:
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


def profile_path(project_dir: str, profile_name: str) -> str:
    if not profile_name.lower().endswith(PROFILE_EXTENSION):
        profile_name = f"{profile_name}{PROFILE_EXTENSION}"
    return os.path.join(project_dir, PROFILES_DIR, profile_name)


class ProfileDocumentReader:
    """Turns a publish profile XML document into a PublishProfile."""

    def __init__(self, logger):
        self.logger = logger

    def read_attributes(self, element: Optional[ET.Element]) -> AttributeMap:
        if element is None:
            raise MalformedDocumentError("Required element is missing from the document.")

        values: Dict[str, AttributeValue] = {}
        for key, raw in element.attrib.items():
            parsed = parse_bool(raw)
            values[local_name(key)] = BoolValue(parsed) if parsed is not None else StringValue(raw)
        return AttributeMap(values)

    def read_profile(self, path: str) -> PublishProfile:
        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            raise ProfileNotFoundError(actionable_error("profile_not_found", path=path))

        self.logger.debug("Reading publish profile: %s", path)
        root = parse_document(path, "PublishProfile")

        connection_element = find_child(root, "ClusterConnectionParameters")
        connection_parameters = (
            self.read_attributes(connection_element)
            if connection_element is not None
            else AttributeMap()
        )

        upgrade_element = find_child(root, "UpgradeDeployment")
        upgrade = (
            self._read_upgrade_deployment(path, upgrade_element)
            if upgrade_element is not None
            else None
        )

        parameter_file_path = None
        parameter_file_element = find_child(root, "ApplicationParameterFile")
        if parameter_file_element is not None:
            parameter_file_path = parameter_file_element.get("Path") or None

        return PublishProfile(
            cluster_connection_parameters=connection_parameters,
            upgrade_deployment=upgrade,
            application_parameter_file_path=parameter_file_path,
            source_path=path,
        )

    def _read_upgrade_deployment(self, path: str, element: ET.Element) -> UpgradeDeployment:
        attributes = self.read_attributes(element)
        parameters_element = find_child(element, "Parameters")
        explicit_parameters = (
            self.read_attributes(parameters_element)
            if parameters_element is not None
            else AttributeMap()
        )

        mode = None
        raw_mode = element.get("Mode")
        if raw_mode:
            try:
                mode = UpgradeMode(raw_mode)
            except ValueError as exc:
                valid = ", ".join(item.value for item in UpgradeMode)
                raise MalformedDocumentError(
                    actionable_error(
                        "malformed_document",
                        path=path,
                        reason=f"unknown upgrade mode '{raw_mode}' (expected one of: {valid})",
                    )
                ) from exc

            if mode.value in explicit_parameters:
                raise MalformedDocumentError(
                    actionable_error(
                        "malformed_document",
                        path=path,
                        reason=(
                            f"upgrade parameter '{mode.value}' collides with the upgrade mode "
                            "of the same name"
                        ),
                    )
                )

        return UpgradeDeployment(
            attributes=attributes,
            mode=mode,
            explicit_parameters=explicit_parameters,
        )
