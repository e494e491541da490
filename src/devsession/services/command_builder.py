"""Argument vectors for the wrapped AWS and kubectl commands."""

from typing import List, Optional

from devsession.models import SessionTarget, StepCommand, TunnelTarget


class CommandBuilder:
    """Builds argv tuples with every input substituted verbatim."""

    def __init__(self, aws_bin: str = "aws", kubectl_bin: str = "kubectl"):
        self.aws_bin = aws_bin
        self.kubectl_bin = kubectl_bin

    def sso_login(self, target: SessionTarget) -> StepCommand:
        return StepCommand(
            name="sso_login",
            argv=(self.aws_bin, "sso", "login", "--profile", target.profile),
            description=f"SSO login with profile {target.profile}",
            capture_output=False,
            interactive=True,
        )

    def update_kubeconfig(self, target: SessionTarget) -> StepCommand:
        return StepCommand(
            name="update_kubeconfig",
            argv=(
                self.aws_bin,
                "eks",
                "--profile",
                target.profile,
                "update-kubeconfig",
                "--name",
                target.cluster,
            ),
            description=f"Update kubeconfig for cluster {target.cluster}",
        )

    def generate_db_auth_token(self, target: SessionTarget) -> StepCommand:
        return StepCommand(
            name="generate_db_auth_token",
            argv=(
                self.aws_bin,
                "rds",
                "generate-db-auth-token",
                "--profile",
                target.db_profile,
                "--hostname",
                target.db_hostname,
                "--port",
                str(target.db_port),
                "--region",
                target.region,
                "--username",
                target.db_username,
            ),
            description=f"Generate IAM auth token for {target.db_username}@{target.db_hostname}",
        )

    def check_namespace(self, namespace: str) -> StepCommand:
        return StepCommand(
            name="check_namespace",
            argv=(self.kubectl_bin, "get", "-n", namespace, "pods"),
            description=f"List pods in namespace {namespace}",
        )

    def port_forward(self, tunnel: TunnelTarget) -> StepCommand:
        return StepCommand(
            name="port_forward",
            argv=(
                self.kubectl_bin,
                "port-forward",
                f"svc/{tunnel.service}",
                "-n",
                tunnel.namespace,
                f"{tunnel.local_port}:{tunnel.remote_port}",
            ),
            description=(
                f"Forward localhost:{tunnel.local_port} to svc/{tunnel.service}:{tunnel.remote_port}"
            ),
            capture_output=False,
            interactive=True,
        )

    def build_plan(
        self,
        target: SessionTarget,
        tunnel: Optional[TunnelTarget] = None,
        check_namespace: Optional[str] = None,
    ) -> List[StepCommand]:
        plan = [
            self.sso_login(target),
            self.update_kubeconfig(target),
            self.generate_db_auth_token(target),
        ]
        if check_namespace:
            plan.append(self.check_namespace(check_namespace))
        if tunnel is not None:
            plan.append(self.port_forward(tunnel))
        return plan
