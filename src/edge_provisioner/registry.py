from __future__ import annotations

import logging
from typing import Mapping

import click

from .commands import run_command
from .config import REGISTRY_USERNAME, ImageReference
from .errors import AuthenticationError, ImagePullError


LOCAL_IMAGE_FORMAT = "{{.Repository}}:{{.Tag}}"

LOGGER = logging.getLogger("edge_provisioner.registry")


def fetch_login_password(region: str, *, env: Mapping[str, str], verbose: bool) -> str:
    result = run_command(
        ["aws", "ecr", "get-login-password", "--region", region],
        verbose=verbose,
        env=env,
        capture_output=True,
    )
    password = (result.stdout or "").strip()
    if result.returncode != 0 or not password:
        LOGGER.debug("get-login-password failed status=%s stderr=%s", result.returncode, (result.stderr or "").strip())
        raise AuthenticationError("Unable to authenticate Docker to ECR. Check your AWS credentials.")
    return password


def authenticate(image: ImageReference, *, env: Mapping[str, str], verbose: bool) -> None:
    """Log the docker daemon into the ECR registry that hosts ``image``."""
    password = fetch_login_password(image.region, env=env, verbose=verbose)
    result = run_command(
        ["docker", "login", "--username", REGISTRY_USERNAME, "--password-stdin", image.registry],
        verbose=verbose,
        env=env,
        input_text=password,
    )
    if result.returncode != 0:
        raise AuthenticationError("Unable to authenticate Docker to ECR. Check your AWS credentials.")
    LOGGER.debug("Docker authenticated to %s", image.registry)


def local_images(*, verbose: bool) -> list[str]:
    result = run_command(
        ["docker", "images", "--format", LOCAL_IMAGE_FORMAT],
        verbose=verbose,
        capture_output=True,
    )
    if result.returncode != 0:
        LOGGER.debug("Listing local images failed with status %s", result.returncode)
        return []
    return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]


def image_present(image: ImageReference, *, verbose: bool) -> bool:
    return image.uri in local_images(verbose=verbose)


def pull_image(image: ImageReference, *, env: Mapping[str, str], verbose: bool) -> None:
    result = run_command(["docker", "pull", image.uri], verbose=verbose, env=env)
    if result.returncode != 0:
        raise ImagePullError(f"Failed to pull the image: {image.uri}")


def ensure_image(image: ImageReference, *, env: Mapping[str, str], verbose: bool) -> bool:
    """Pull ``image`` unless docker already has it. Returns True if it pulled."""
    if image_present(image, verbose=verbose):
        click.echo(f"Image {image.uri} is already available locally.")
        return False

    click.echo(f"Image {image.uri} not found locally. Pulling from ECR...")
    pull_image(image, env=env, verbose=verbose)
    click.echo(f"Successfully pulled the image: {image.uri}")
    return True
