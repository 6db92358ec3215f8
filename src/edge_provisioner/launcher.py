from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Mapping

import click

from .commands import run_command
from .config import Credentials, DeviceIdentity, ImageReference, ProvisioningRequest, ProvisionerSettings
from .errors import LaunchError


HOST_DEVICE_PATH = "/dev"
CONTAINER_OUTPUT_PATH = "/outputFiles"

LOGGER = logging.getLogger("edge_provisioner.launcher")


def container_environment(
    credentials: Credentials,
    identity: DeviceIdentity,
    request: ProvisioningRequest,
) -> list[str]:
    # Credentials are passed by name; docker reads the values from its own environment.
    entries = list(credentials.as_environment())
    entries.extend(
        [
            f"CLIENT_ID={request.client_id}",
            f"THING_NAME={identity.thing_name}",
            "PROVISION=true",
            f"AWS_REGION={request.region}",
        ]
    )
    return entries


def build_run_command(
    image: ImageReference,
    credentials: Credentials,
    identity: DeviceIdentity,
    request: ProvisioningRequest,
    *,
    output_dir: str,
) -> list[str]:
    cmd = ["docker", "run"]
    for entry in container_environment(credentials, identity, request):
        cmd.extend(["--env", entry])
    cmd.extend(
        [
            "--volume",
            f"{HOST_DEVICE_PATH}:{HOST_DEVICE_PATH}",
            "--volume",
            f"{output_dir}:{CONTAINER_OUTPUT_PATH}",
            "--name",
            identity.thing_name,
            "-i",
            "-t",
            "-d",
            image.uri,
        ]
    )
    return cmd


def _prepare_output_dir(output_dir: str) -> None:
    try:
        Path(output_dir).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        click.echo(
            f"Warning: unable to create output directory {output_dir}: {exc}. Docker will create it on mount.",
            err=True,
        )


def launch_container(
    image: ImageReference,
    credentials: Credentials,
    identity: DeviceIdentity,
    request: ProvisioningRequest,
    settings: ProvisionerSettings,
    *,
    env: Mapping[str, str] | None = None,
    sleep=time.sleep,
) -> str:
    """Start the provisioning container detached and return its id."""
    output_dir = settings.output_dir_for(identity)
    _prepare_output_dir(output_dir)

    if env is None:
        env = settings.command_environment(credentials, request.region)
    cmd = build_run_command(image, credentials, identity, request, output_dir=output_dir)
    result = run_command(cmd, verbose=request.debug, env=env, capture_output=True)
    if result.returncode != 0:
        detail = (result.stderr or "").strip()
        message = f"Failed to start the container from the image: {image.uri}."
        if detail:
            message = f"{message} {detail}"
        raise LaunchError(message)

    container_id = (result.stdout or "").strip()
    LOGGER.debug("Started container %s name=%s", container_id or "<unknown>", identity.thing_name)
    click.echo("Running docker container ...")
    if settings.launch_delay_seconds > 0:
        sleep(settings.launch_delay_seconds)
    click.echo(f"Successfully started the container from the image: {image.uri}.")
    return container_id
