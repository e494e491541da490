"""Checks that the wrapped command-line tools are installed and usable."""

import re
from typing import Callable, Optional

from packaging import version

from devsession.errors import BootstrapError
from devsession.errors_catalog import actionable_error

AWS_CLI_VERSION_PATTERN = re.compile(r"aws-cli/(\S+)")
MIN_AWS_CLI_MAJOR = 2


class ToolchainService:
    """Validates the AWS CLI and kubectl before any step runs."""

    def __init__(self, logger, console, aws_bin: str = "aws", kubectl_bin: str = "kubectl"):
        self.logger = logger
        self.console = console
        self.aws_bin = aws_bin
        self.kubectl_bin = kubectl_bin

    def parse_aws_cli_version(self, output: str) -> Optional[version.Version]:
        match = AWS_CLI_VERSION_PATTERN.search(output or "")
        if not match:
            return None
        try:
            return version.parse(match.group(1))
        except version.InvalidVersion:
            return None

    def validate_environment(self, run_cmd: Callable, needs_kubectl: bool = False):
        self.console.print("[blue]Validating toolchain...[/blue]")

        result = run_cmd([self.aws_bin, "--version"], capture_output=True)
        # AWS CLI v1 prints its version on stderr.
        raw = (result.stdout or "") + (result.stderr or "")
        aws_version = self.parse_aws_cli_version(raw)
        if aws_version is None:
            self.logger.warning("Could not determine AWS CLI version from: %s", raw.strip())
        elif aws_version.major < MIN_AWS_CLI_MAJOR:
            raise BootstrapError(actionable_error("aws_cli_too_old", found=str(aws_version)))
        else:
            self.logger.debug("AWS CLI version %s", aws_version)

        if needs_kubectl:
            run_cmd([self.kubectl_bin, "version", "--client"], capture_output=True)

        self.console.print("[green]Toolchain is available.[/green]")
