import logging
import shlex
from typing import Callable, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .errors import BootstrapError, StepFailedError
from .errors_catalog import actionable_error
from .models import SessionTarget, StepCommand, TunnelTarget
from .services.command_builder import CommandBuilder
from .services.command_runner import CommandRunner
from .services.login_monitor import SsoLoginMonitor
from .services.toolchain import ToolchainService

console = Console(stderr=True)
logger = logging.getLogger("devsession")

EXIT_INTERRUPTED = 130


class SessionBootstrapper:
    """Runs SSO login, kubeconfig update, token generation and the optional tunnel in order."""

    def __init__(
        self,
        target: SessionTarget,
        tunnel: Optional[TunnelTarget] = None,
        check_namespace: Optional[str] = None,
        step_timeout: Optional[float] = None,
        dry_run: bool = False,
        verbose: bool = False,
        output: Callable[[str], None] = print,
    ):
        self.target = target
        self.tunnel = tunnel
        self.check_namespace = check_namespace
        self.step_timeout = step_timeout
        self.dry_run = dry_run
        self.verbose = verbose
        self.output = output
        self.current_step_name: Optional[str] = None

        self.command_builder = CommandBuilder()
        self.command_runner = CommandRunner(logger=logger, default_timeout=step_timeout)
        self.toolchain_service = ToolchainService(logger=logger, console=console)

        self._handlers: Dict[str, Callable[[StepCommand], None]] = {
            "sso_login": self.sso_login,
            "update_kubeconfig": self.update_kubeconfig,
            "generate_db_auth_token": self.generate_db_auth_token,
            "check_namespace": self.verify_namespace,
            "port_forward": self.port_forward,
        }

    def plan(self) -> List[StepCommand]:
        return self.command_builder.build_plan(
            self.target,
            tunnel=self.tunnel,
            check_namespace=self.check_namespace,
        )

    def describe_plan(self, plan: List[StepCommand]):
        table = Table(title="Session bootstrap plan")
        table.add_column("#", justify="right")
        table.add_column("Step")
        table.add_column("Description")
        table.add_column("Output")
        for index, step in enumerate(plan, start=1):
            mode = "interactive" if step.interactive else "captured"
            table.add_row(str(index), step.name, step.description, mode)
        console.print(table)

        for step in plan:
            self.output(shlex.join(step.argv))

    def _run_cmd(self, cmd: List[str], check: bool = True, capture_output: bool = False):
        return self.command_runner.run(cmd, check=check, capture_output=capture_output)

    def _fail(self, exc: StepFailedError, code: str, **kwargs):
        message = actionable_error(code, **kwargs)
        if exc.stderr:
            message = f"{message}\n{exc.stderr}"
        raise StepFailedError(
            message,
            step=exc.step,
            returncode=exc.returncode,
            stderr=exc.stderr,
        ) from exc

    def validate_toolchain(self, plan: List[StepCommand]):
        needs_kubectl = any(step.argv[0] == self.command_builder.kubectl_bin for step in plan)
        self.toolchain_service.validate_environment(self._run_cmd, needs_kubectl=needs_kubectl)

    def sso_login(self, step: StepCommand):
        console.print(f"[blue]Logging in with SSO profile {self.target.profile}...[/blue]")
        monitor = SsoLoginMonitor(logger=logger, console=console, verbose=self.verbose)
        try:
            self.command_runner.stream(step.argv, monitor.feed, step=step.name)
        except StepFailedError as exc:
            self._fail(exc, "sso_login_failed", profile=self.target.profile)

        if not monitor.logged_in:
            logger.warning("SSO login exited cleanly without a success message.")

    def update_kubeconfig(self, step: StepCommand):
        console.print(f"[blue]Updating kubeconfig for cluster {self.target.cluster}...[/blue]")
        try:
            result = self.command_runner.run(
                step.argv,
                capture_output=step.capture_output,
                step=step.name,
            )
        except StepFailedError as exc:
            self._fail(
                exc,
                "kubeconfig_update_failed",
                cluster=self.target.cluster,
                profile=self.target.profile,
            )
        if result.stdout:
            logger.info(result.stdout.strip())

    def generate_db_auth_token(self, step: StepCommand):
        console.print(f"[blue]Generating database auth token for {self.target.db_username}...[/blue]")
        try:
            result = self.command_runner.run(
                step.argv,
                capture_output=step.capture_output,
                redact_output=True,
                step=step.name,
            )
        except StepFailedError as exc:
            self._fail(
                exc,
                "db_token_failed",
                username=self.target.db_username,
                hostname=self.target.db_hostname,
                profile=self.target.db_profile,
            )

        token = (result.stdout or "").strip()
        if not token:
            raise BootstrapError("The token command succeeded but printed no token.")
        self.output(token)
        console.print("[green]Database auth token written to stdout.[/green]")

    def verify_namespace(self, step: StepCommand):
        console.print(f"[blue]Checking cluster access in namespace {self.check_namespace}...[/blue]")
        try:
            self.command_runner.run(step.argv, capture_output=step.capture_output, step=step.name)
        except StepFailedError as exc:
            self._fail(exc, "namespace_check_failed", namespace=self.check_namespace)
        console.print("[green]Cluster is reachable.[/green]")

    def port_forward(self, step: StepCommand):
        console.print(
            f"[bold blue]Opening tunnel on localhost:{self.tunnel.local_port}. "
            "Press Ctrl+C to close it.[/bold blue]"
        )
        try:
            # Runs until interrupted; step_timeout does not apply.
            self.command_runner.run(
                step.argv,
                capture_output=step.capture_output,
                step=step.name,
                use_default_timeout=False,
            )
        except StepFailedError as exc:
            self._fail(
                exc,
                "tunnel_failed",
                service=self.tunnel.service,
                namespace=self.tunnel.namespace,
                local_port=self.tunnel.local_port,
            )

    def _run_step(self, step: StepCommand):
        self.current_step_name = step.name
        logger.debug("Running step %s", step.name)
        self._handlers[step.name](step)
        self.current_step_name = None

    def run(self) -> int:
        try:
            logger.info("Starting session bootstrap...")
            plan = self.plan()

            if self.dry_run:
                self.describe_plan(plan)
                return 0

            self.validate_toolchain(plan)
            for step in plan:
                self._run_step(step)

            console.print("[bold green]Session ready.[/bold green]")
            return 0

        except KeyboardInterrupt:
            if self.current_step_name == "port_forward":
                console.print("[green]Tunnel closed.[/green]")
                logger.info("Tunnel closed by user")
                return 0
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except BootstrapError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            return exc.exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            return 1
