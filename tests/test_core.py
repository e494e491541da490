import logging
import subprocess
from types import SimpleNamespace

import pytest

from devsession.core import SessionBootstrapper
from devsession.errors import StepFailedError
from devsession.models import SessionTarget, TunnelTarget

TOKEN = "lab-non-prod.example.rds.amazonaws.com:3306/?Action=connect&DBUser=LabDeveloper&X-Amz-Signature=abc123"


class FakeRunner:
    """Stands in for CommandRunner; records every command it is asked to run."""

    def __init__(self, fail_on=None, returncode=2, stderr="An error occurred", interrupt_on=None):
        self.fail_on = fail_on
        self.returncode = returncode
        self.stderr = stderr
        self.interrupt_on = interrupt_on
        self.calls = []
        self.steps = []

    def _maybe_fail(self, step):
        if step is not None and step == self.interrupt_on:
            raise KeyboardInterrupt
        if step is not None and step == self.fail_on:
            raise StepFailedError(
                f"Command failed ({self.returncode})",
                step=step,
                returncode=self.returncode,
                stderr=self.stderr,
            )

    def run(self, cmd, check=True, capture_output=False, step=None, **_kwargs):
        cmd = list(cmd)
        self.calls.append(cmd)
        if cmd[1:] == ["--version"]:
            return subprocess.CompletedProcess(cmd, 0, stdout="aws-cli/2.15.30 Python/3.11.8", stderr="")
        if cmd[:2] == ["kubectl", "version"]:
            return subprocess.CompletedProcess(cmd, 0, stdout="Client Version: v1.29.0", stderr="")

        self.steps.append(step)
        self._maybe_fail(step)
        stdout = TOKEN + "\n" if step == "generate_db_auth_token" else "Updated context arn:aws:eks\n"
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def stream(self, cmd, on_line, check=True, step=None):
        self.calls.append(list(cmd))
        self.steps.append(step)
        self._maybe_fail(step)
        on_line("Successfully logged into Start URL: https://example.awsapps.com/start")
        return 0


def _target() -> SessionTarget:
    return SessionTarget(
        profile="eks-dev",
        db_profile="rds-dev",
        cluster="shared-non-prod-2",
        db_hostname="lab-non-prod.example.rds.amazonaws.com",
        db_port=3306,
        region="eu-west-1",
        db_username="LabDeveloper",
    )


def _tunnel() -> TunnelTarget:
    return TunnelTarget(service="mariadb", namespace="tunneller", local_port=3406, remote_port=3306)


def build_bootstrapper(runner, **kwargs):
    outputs = []
    bootstrapper = SessionBootstrapper(target=_target(), output=outputs.append, **kwargs)
    bootstrapper.command_runner = runner
    return bootstrapper, outputs


def test_run_executes_steps_in_order_and_prints_token():
    runner = FakeRunner()
    bootstrapper, outputs = build_bootstrapper(runner)

    exit_code = bootstrapper.run()

    assert exit_code == 0
    assert runner.steps == ["sso_login", "update_kubeconfig", "generate_db_auth_token"]
    assert outputs == [TOKEN]


def test_failed_login_stops_later_steps_and_propagates_exit_code():
    runner = FakeRunner(fail_on="sso_login", returncode=255)
    bootstrapper, outputs = build_bootstrapper(runner)

    exit_code = bootstrapper.run()

    assert exit_code == 255
    assert runner.steps == ["sso_login"]
    assert outputs == []


def test_failed_kubeconfig_update_skips_token():
    runner = FakeRunner(fail_on="update_kubeconfig", returncode=254)
    bootstrapper, outputs = build_bootstrapper(runner)

    assert bootstrapper.run() == 254
    assert "generate_db_auth_token" not in runner.steps
    assert outputs == []


def test_step_failure_message_keeps_tool_stderr(capsys):
    runner = FakeRunner(fail_on="generate_db_auth_token", stderr="Unable to locate credentials")
    bootstrapper, _ = build_bootstrapper(runner)

    bootstrapper.run()

    captured = capsys.readouterr()
    assert "Unable to locate credentials" in captured.err
    assert "LabDeveloper@lab-non-prod.example.rds.amazonaws.com" in captured.err


def test_token_never_reaches_logs(caplog):
    caplog.set_level(logging.DEBUG, logger="devsession")
    runner = FakeRunner()
    bootstrapper, outputs = build_bootstrapper(runner, verbose=True)

    bootstrapper.run()

    assert outputs == [TOKEN]
    assert TOKEN not in caplog.text


def test_tunnel_only_runs_when_enabled():
    runner = FakeRunner()
    bootstrapper, _ = build_bootstrapper(runner)
    bootstrapper.run()
    assert "port_forward" not in runner.steps

    runner = FakeRunner()
    bootstrapper, _ = build_bootstrapper(runner, tunnel=_tunnel())
    assert bootstrapper.run() == 0
    assert runner.steps[-1] == "port_forward"
    assert ["kubectl", "version", "--client"] in runner.calls


def test_interrupting_tunnel_is_a_clean_exit():
    runner = FakeRunner(interrupt_on="port_forward")
    bootstrapper, outputs = build_bootstrapper(runner, tunnel=_tunnel())

    assert bootstrapper.run() == 0
    assert outputs == [TOKEN]


def test_interrupting_login_aborts_with_130():
    runner = FakeRunner(interrupt_on="sso_login")
    bootstrapper, _ = build_bootstrapper(runner)

    assert bootstrapper.run() == 130
    assert runner.steps == ["sso_login"]


def test_dry_run_prints_commands_without_running_anything():
    runner = FakeRunner()
    bootstrapper, outputs = build_bootstrapper(runner, dry_run=True, tunnel=_tunnel())

    assert bootstrapper.run() == 0
    assert runner.calls == []
    assert outputs == [
        "aws sso login --profile eks-dev",
        "aws eks --profile eks-dev update-kubeconfig --name shared-non-prod-2",
        "aws rds generate-db-auth-token --profile rds-dev "
        "--hostname lab-non-prod.example.rds.amazonaws.com --port 3306 "
        "--region eu-west-1 --username LabDeveloper",
        "kubectl port-forward svc/mariadb -n tunneller 3406:3306",
    ]


def test_plan_is_deterministic():
    first, _ = build_bootstrapper(FakeRunner(), tunnel=_tunnel(), check_namespace="dev")
    second, _ = build_bootstrapper(FakeRunner(), tunnel=_tunnel(), check_namespace="dev")

    assert [step.argv for step in first.plan()] == [step.argv for step in second.plan()]


def test_missing_aws_cli_returns_127(monkeypatch):
    bootstrapper = SessionBootstrapper(target=_target(), output=lambda _line: None)

    def missing(*_args, **_kwargs):
        raise FileNotFoundError("aws")

    monkeypatch.setattr(bootstrapper.command_runner.subprocess, "run", missing)

    assert bootstrapper.run() == 127


def test_namespace_check_runs_after_token():
    runner = FakeRunner()
    bootstrapper, outputs = build_bootstrapper(runner, check_namespace="dev-salespoint")

    assert bootstrapper.run() == 0
    assert runner.steps == [
        "sso_login",
        "update_kubeconfig",
        "generate_db_auth_token",
        "check_namespace",
    ]
    assert ["kubectl", "get", "-n", "dev-salespoint", "pods"] in runner.calls
    assert outputs == [TOKEN]


def test_failed_namespace_check_aborts_before_tunnel(capsys):
    runner = FakeRunner(fail_on="check_namespace", returncode=1, stderr="Forbidden")
    bootstrapper, _ = build_bootstrapper(runner, check_namespace="dev-salespoint", tunnel=_tunnel())

    assert bootstrapper.run() == 1
    assert "port_forward" not in runner.steps
    captured = capsys.readouterr()
    assert "dev-salespoint" in captured.err
    assert "Forbidden" in captured.err


def test_kubeconfig_output_is_logged_at_info(caplog):
    caplog.set_level(logging.INFO, logger="devsession")
    bootstrapper, _ = build_bootstrapper(FakeRunner())

    bootstrapper.run()

    records = [record for record in caplog.records if "Updated context arn:aws:eks" in record.getMessage()]
    assert len(records) == 1
    assert records[0].levelno == logging.INFO


def test_step_timeout_returns_124():
    seen_timeouts = []

    class FakePopen:
        def __init__(self, cmd, **_kwargs):
            self.stdout = iter(["Successfully logged into Start URL: https://example.awsapps.com/start\n"])

        def __enter__(self):
            return self

        def __exit__(self, *_exc_info):
            return False

        def wait(self, timeout=None):
            return 0

    def fake_run(cmd, timeout=None, **_kwargs):
        if cmd[1:] == ["--version"]:
            return subprocess.CompletedProcess(cmd, 0, stdout="aws-cli/2.15.30", stderr="")
        seen_timeouts.append(timeout)
        raise subprocess.TimeoutExpired(cmd, timeout)

    outputs = []
    bootstrapper = SessionBootstrapper(target=_target(), step_timeout=7.5, output=outputs.append)
    bootstrapper.command_runner.subprocess = SimpleNamespace(
        run=fake_run,
        Popen=FakePopen,
        PIPE=subprocess.PIPE,
        STDOUT=subprocess.STDOUT,
    )

    assert bootstrapper.run() == 124
    assert seen_timeouts == [7.5]
    assert outputs == []
