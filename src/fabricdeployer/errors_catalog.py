"""Actionable error catalog for fabricdeployer."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "profile_not_found": {
        "what": "Publish profile not found: {path}",
        "next": "Check `--profile` and `--root`, or create the profile under `PublishProfiles/`.",
    },
    "malformed_document": {
        "what": "Malformed document '{path}': {reason}",
        "next": "Fix the XML document and retry.",
    },
    "missing_parameter_file_path": {
        "what": "Application '{application}' requires a parameter file but the profile declares none.",
        "next": "Add an `ApplicationParameterFile Path=\"...\"` element to the publish profile.",
    },
    "cluster_unreachable": {
        "what": "Cannot connect to the cluster at {endpoint}: {reason}",
        "next": "Make sure the cluster is running and the connection parameters in the profile are correct.",
    },
    "management_operation_failed": {
        "what": "{operation} failed for application '{application}': {reason}",
        "next": "Review the platform message, adjust `--overwrite-behavior` if needed, and re-run.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
