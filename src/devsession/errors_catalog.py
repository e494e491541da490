"""Actionable error catalog for devsession."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "command_not_found": {
        "what": "Required command not found: {command}.",
        "next": "Install it and make sure it is on your PATH.",
    },
    "aws_cli_too_old": {
        "what": "AWS CLI {found} is installed, but SSO login requires version 2 or later.",
        "next": "Install AWS CLI v2 from https://docs.aws.amazon.com/cli/latest/userguide/getting-started-install.html.",
    },
    "sso_login_failed": {
        "what": "SSO login for profile '{profile}' failed.",
        "next": "Check the profile's sso_start_url in ~/.aws/config and complete the browser confirmation.",
    },
    "kubeconfig_update_failed": {
        "what": "Updating kubeconfig for cluster '{cluster}' failed.",
        "next": "Verify the cluster name and that profile '{profile}' may call eks:DescribeCluster.",
    },
    "db_token_failed": {
        "what": "Generating a database auth token for {username}@{hostname} failed.",
        "next": "Verify the hostname, region and that profile '{profile}' has a valid session.",
    },
    "namespace_check_failed": {
        "what": "Listing pods in namespace '{namespace}' failed.",
        "next": "Check that the current kubeconfig context points at the right cluster and that you have access.",
    },
    "tunnel_failed": {
        "what": "Port-forward to svc/{service} in namespace '{namespace}' failed.",
        "next": "Check the service name and namespace, and that local port {local_port} is free.",
    },
    "step_timed_out": {
        "what": "Command timed out after {timeout}s: {command}",
        "next": "Raise `--step-timeout` or check network connectivity to AWS.",
    },
    "missing_option": {
        "what": "Missing required option '--{option}'.",
        "next": "Pass it on the command line or set `{key}` in the config file.",
    },
    "tunnel_incomplete": {
        "what": "The tunnel is enabled but these options are not set: {missing}.",
        "next": "Provide the tunnel options or drop `--tunnel`.",
    },
}


def actionable_error(code: str, **kwargs) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
