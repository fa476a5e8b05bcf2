"""Command-line entry point for the EC2 instance hardener.

Usage::

    hardener <aws-profile> <instance-id> [role-name]

Exit code 0 means the workflow finished, possibly with warnings. Exit code 1
means a fatal condition stopped it; nothing is rolled back.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from botocore.exceptions import BotoCoreError

from hardener import __version__
from hardener.provisioning.confirmation import (
    AutomatedConfirmation,
    ConfirmationProvider,
    InteractiveConfirmation,
)
from hardener.provisioning.engine import ProvisioningEngine
from hardener.provisioning.errors import ProvisioningError
from hardener.remote.ssh_executor import SSHCredentials, SSHExecutor
from hardener.utils.aws_client import AWSClientManager
from hardener.utils.config import (
    ConfigurationError,
    HardenerConfig,
    TimingConfig,
    configure_logging,
)
from hardener.utils.logging import log_error_with_details, log_key_values, log_section
from hardener.utils.security import InputValidator, LogSanitizer

logger = logging.getLogger(__name__)

EXIT_FATAL = 1

app = typer.Typer(
    help="Attach a role, tag, protect and rename a single EC2 instance.",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hardener {__version__}")
        raise typer.Exit()


def select_confirmer(assume_yes: bool, no_input: bool) -> ConfirmationProvider:
    """Pick the confirmation provider; runs without a TTY default to no."""
    if assume_yes:
        return AutomatedConfirmation(allow=True)
    if no_input or not sys.stdin.isatty():
        return AutomatedConfirmation(allow=False)
    return InteractiveConfirmation()


def build_engine(
    config: HardenerConfig,
    client_manager: AWSClientManager,
    confirmer: ConfirmationProvider,
) -> ProvisioningEngine:
    """Wire AWS clients, the SSH executor and the stages together."""
    timing = config.timing or TimingConfig()
    executor = SSHExecutor(
        SSHCredentials(username=config.ssh_user, key_path=config.expanded_ssh_key_path),
        connect_timeout=timing.ssh_connect_timeout,
    )
    return ProvisioningEngine(
        ec2_client=client_manager.ec2,
        iam_client=client_manager.iam,
        executor=executor,
        confirmer=confirmer,
        timing=timing,
    )


@app.command()
def main(
    aws_profile: str = typer.Argument(..., help="AWS CLI profile to use"),
    instance_id: str = typer.Argument(..., help="EC2 instance ID, e.g. i-1234567890abcdef0"),
    role_name: Optional[str] = typer.Argument(
        None, help="IAM role to attach (defaults to HARDENER_ROLE_NAME; omit to skip)"
    ),
    profile_name: Optional[str] = typer.Option(
        None, "--profile-name", help="Instance profile name if it differs from the role name"
    ),
    ssh_key: Optional[Path] = typer.Option(None, "--ssh-key", help="SSH private key path"),
    ssh_user: Optional[str] = typer.Option(None, "--ssh-user", help="SSH login user"),
    region: Optional[str] = typer.Option(None, "--region", help="AWS region override"),
    assume_yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every prompt"),
    no_input: bool = typer.Option(False, "--no-input", help="Never prompt; answer no"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    """Harden a single EC2 instance."""
    config = HardenerConfig.from_environment(validate=False)
    if role_name:
        config.role_name = role_name
    if profile_name:
        config.profile_name = profile_name
    if ssh_key is not None:
        config.ssh_key_path = str(ssh_key)
    if ssh_user:
        config.ssh_user = ssh_user
    if region:
        config.region = region
    if log_level:
        config.log_level = log_level.upper().strip()

    configure_logging(config)

    errors = InputValidator.validate_instance_id(instance_id).errors
    try:
        config.ensure_valid()
    except ConfigurationError as e:
        errors = e.errors + errors
    if errors:
        for error in errors:
            logger.error(LogSanitizer.sanitize(error))
        raise typer.Exit(EXIT_FATAL)

    log_section("AWS EC2 Instance Hardener")
    log_key_values(
        {
            "Profile": aws_profile,
            "Instance ID": instance_id,
            "Role": config.role_name or "(not requested)",
            "SSH Key": config.expanded_ssh_key_path,
        }
    )

    confirmer = select_confirmer(assume_yes, no_input)
    client_manager = AWSClientManager(profile_name=aws_profile, region=config.region)

    try:
        engine = build_engine(config, client_manager, confirmer)
        result = engine.run(
            instance_id,
            role_name=config.role_name,
            profile_name=config.effective_profile_name,
        )
    except ProvisioningError as e:
        logger.error(LogSanitizer.sanitize(e.message))
        log_section("Aborted")
        raise typer.Exit(EXIT_FATAL)
    except BotoCoreError as e:
        log_error_with_details("aws-profile", aws_profile, e)
        logger.error("Check that the AWS profile exists and has valid credentials")
        raise typer.Exit(EXIT_FATAL)

    if result.degraded:
        log_section("Hardening completed with warnings")
    else:
        log_section("Hardening completed successfully!")


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
