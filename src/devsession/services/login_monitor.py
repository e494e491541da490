"""Watches `aws sso login` output for the device code and completion."""

import re
from typing import Optional

DEVICE_CODE_PATTERN = re.compile(r"\b([A-Za-z]{4}-[A-Za-z]{4})\b")
URL_PATTERN = re.compile(r"https://\S+")
SUCCESS_MARKER = "Successfully"


class SsoLoginMonitor:
    """Extracts the verification URL, device code and success line from login output."""

    def __init__(self, logger, console, verbose: bool = False):
        self.logger = logger
        self.console = console
        self.verbose = verbose
        self.device_code: Optional[str] = None
        self.verification_url: Optional[str] = None
        self.logged_in = False

    def feed(self, line: str):
        self.logger.debug(line)

        if self.verification_url is None:
            url_match = URL_PATTERN.search(line)
            if url_match:
                self.verification_url = url_match.group(0)
                self.console.print(f"[blue]Verification URL:[/blue] {self.verification_url}")
                return

        if self.device_code is None:
            # URLs can contain code-like fragments; only look outside them.
            code_match = DEVICE_CODE_PATTERN.search(URL_PATTERN.sub("", line))
            if code_match:
                self.device_code = code_match.group(1)
                self.console.print(
                    f"[bold yellow]Confirm this code in your browser: {self.device_code}[/bold yellow]"
                )
                return

        if SUCCESS_MARKER in line:
            self.logged_in = True
            self.console.print(f"[green]{line}[/green]")
            return

        if self.verbose:
            self.console.print(f"[dim]{line}[/dim]")
