"""Subprocess execution service for devsession."""

import subprocess
from typing import Callable, List, Optional, Sequence

from devsession.errors import BootstrapError, StepFailedError
from devsession.errors_catalog import actionable_error

EXIT_COMMAND_NOT_FOUND = 127
EXIT_TIMEOUT = 124


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = None, subprocess_module=subprocess):
        self.logger = logger
        self.default_timeout = default_timeout
        self.subprocess = subprocess_module

    def run(
        self,
        cmd: Sequence[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        redact_output: bool = False,
        step: Optional[str] = None,
        use_default_timeout: bool = True,
    ) -> subprocess.CompletedProcess:
        cmd = list(cmd)
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout
        if effective_timeout is None and use_default_timeout:
            effective_timeout = self.default_timeout

        try:
            result = self.subprocess.run(
                cmd,
                text=True,
                capture_output=capture_output,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise BootstrapError(
                actionable_error("command_not_found", command=cmd[0]),
                exit_code=EXIT_COMMAND_NOT_FOUND,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise BootstrapError(
                actionable_error("step_timed_out", timeout=effective_timeout, command=cmd_str),
                exit_code=EXIT_TIMEOUT,
            ) from exc
        except OSError as exc:
            raise BootstrapError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            if redact_output:
                self.logger.debug("Command output: <redacted, %d bytes>", len(result.stdout))
            else:
                self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").strip() if capture_output else ""
        message = f"Command failed ({result.returncode}): {cmd_str}"
        if stderr:
            message = f"{message}\n{stderr}"

        if check:
            raise StepFailedError(message, step=step, returncode=result.returncode, stderr=stderr)

        self.logger.warning(message)
        return result

    def stream(
        self,
        cmd: Sequence[str],
        on_line: Callable[[str], None],
        check: bool = True,
        step: Optional[str] = None,
    ) -> int:
        """Run a command, handing each stdout/stderr line to ``on_line`` as it arrives."""
        cmd = list(cmd)
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing (streaming): %s", cmd_str)

        tail: List[str] = []
        try:
            process = self.subprocess.Popen(
                cmd,
                stdout=self.subprocess.PIPE,
                stderr=self.subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except FileNotFoundError as exc:
            raise BootstrapError(
                actionable_error("command_not_found", command=cmd[0]),
                exit_code=EXIT_COMMAND_NOT_FOUND,
            ) from exc
        except OSError as exc:
            raise BootstrapError(f"Failed to execute command: {cmd_str}. {exc}") from exc

        with process:
            # Merged streams: the last lines are what the tool printed on failure.
            try:
                for line in process.stdout:
                    cleaned = line.rstrip()
                    if not cleaned:
                        continue
                    tail = (tail + [cleaned])[-20:]
                    on_line(cleaned)
                returncode = process.wait()
            except KeyboardInterrupt:
                process.terminate()
                try:
                    process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    process.kill()
                raise

        if returncode != 0 and check:
            message = f"Command failed ({returncode}): {cmd_str}"
            output = "\n".join(tail)
            if output:
                message = f"{message}\n{output}"
            raise StepFailedError(message, step=step, returncode=returncode, stderr=output)

        return returncode
