from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Mapping

from .errors import MissingArgument, MissingCredentials, ProvisionError


DEFAULT_ACCOUNT_ID = "147997154696"
DEFAULT_REPOSITORY = "greengrass-docker"
DEFAULT_IMAGE_TAG = "latest"
DEFAULT_OUTPUT_ROOT = "/outputFiles"
DEFAULT_LAUNCH_DELAY_SECONDS = 20.0
AWS_CLI_DOWNLOAD_URLS = {
    "x86_64": "https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip",
    "aarch64": "https://awscli.amazonaws.com/awscli-exe-linux-aarch64.zip",
}
AWS_CLI_BIN_DIR = "/usr/local/bin"
AWS_CLI_INSTALL_DIR = "/usr/local/aws-cli"
REGISTRY_USERNAME = "AWS"

ACCESS_KEY_ID_ENV = "AWS_ACCESS_KEY_ID"
SECRET_ACCESS_KEY_ENV = "AWS_SECRET_ACCESS_KEY"
SESSION_TOKEN_ENV = "AWS_SESSION_TOKEN"
ACCOUNT_ID_ENV = "EDGE_PROVISIONER_ACCOUNT_ID"
REPOSITORY_ENV = "EDGE_PROVISIONER_REPOSITORY"
IMAGE_TAG_ENV = "EDGE_PROVISIONER_IMAGE_TAG"
OUTPUT_ROOT_ENV = "EDGE_PROVISIONER_OUTPUT_ROOT"
LAUNCH_DELAY_ENV = "EDGE_PROVISIONER_LAUNCH_DELAY"


def _env_value(environ: Mapping[str, str], key: str) -> str:
    return str(environ.get(key, "") or "").strip()


@dataclass(frozen=True)
class ProvisioningRequest:
    region: str
    client_id: str
    debug: bool = False


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_access_key: str
    session_token: str | None = field(default=None)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> Credentials:
        access_key_id = _env_value(environ, ACCESS_KEY_ID_ENV)
        secret_access_key = _env_value(environ, SECRET_ACCESS_KEY_ENV)
        if not access_key_id or not secret_access_key:
            raise MissingCredentials(
                "AWS Access Key ID, Secret Access Key must be set as environment variables."
            )
        return cls(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=_env_value(environ, SESSION_TOKEN_ENV) or None,
        )

    def as_environment(self) -> dict[str, str]:
        values = {
            ACCESS_KEY_ID_ENV: self.access_key_id,
            SECRET_ACCESS_KEY_ENV: self.secret_access_key,
        }
        if self.session_token:
            values[SESSION_TOKEN_ENV] = self.session_token
        return values

    def __repr__(self) -> str:
        return f"Credentials(access_key_id={self.access_key_id!r}, secret_access_key='***')"


@dataclass(frozen=True)
class DeviceIdentity:
    thing_name: str

    @classmethod
    def generate(cls) -> DeviceIdentity:
        return cls(thing_name=str(uuid.uuid4()))


@dataclass(frozen=True)
class ImageReference:
    account_id: str
    region: str
    repository: str
    tag: str

    @property
    def registry(self) -> str:
        return f"{self.account_id}.dkr.ecr.{self.region}.amazonaws.com"

    @property
    def uri(self) -> str:
        return f"{self.registry}/{self.repository}:{self.tag}"


@dataclass(frozen=True)
class ProvisionerSettings:
    account_id: str = DEFAULT_ACCOUNT_ID
    repository: str = DEFAULT_REPOSITORY
    image_tag: str = DEFAULT_IMAGE_TAG
    output_root: str = DEFAULT_OUTPUT_ROOT
    launch_delay_seconds: float = DEFAULT_LAUNCH_DELAY_SECONDS
    environment: Mapping[str, str] = field(default_factory=dict, repr=False)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> ProvisionerSettings:
        raw_delay = _env_value(environ, LAUNCH_DELAY_ENV)
        launch_delay = DEFAULT_LAUNCH_DELAY_SECONDS
        if raw_delay:
            try:
                launch_delay = float(raw_delay)
            except ValueError as exc:
                raise ProvisionError(f"Invalid {LAUNCH_DELAY_ENV}: {raw_delay!r} (expected seconds)") from exc
            if launch_delay < 0:
                raise ProvisionError(f"Invalid {LAUNCH_DELAY_ENV}: {raw_delay!r} (must not be negative)")

        output_root = _env_value(environ, OUTPUT_ROOT_ENV) or DEFAULT_OUTPUT_ROOT
        if not output_root.startswith("/"):
            raise ProvisionError(f"Invalid {OUTPUT_ROOT_ENV}: {output_root} (must be absolute)")

        return cls(
            account_id=_env_value(environ, ACCOUNT_ID_ENV) or DEFAULT_ACCOUNT_ID,
            repository=_env_value(environ, REPOSITORY_ENV) or DEFAULT_REPOSITORY,
            image_tag=_env_value(environ, IMAGE_TAG_ENV) or DEFAULT_IMAGE_TAG,
            output_root=output_root.rstrip("/") or "/",
            launch_delay_seconds=launch_delay,
            environment=dict(environ),
        )

    def image_for(self, region: str) -> ImageReference:
        return ImageReference(
            account_id=self.account_id,
            region=region,
            repository=self.repository,
            tag=self.image_tag,
        )

    def output_dir_for(self, identity: DeviceIdentity) -> str:
        return f"{self.output_root.rstrip('/')}/{identity.thing_name}"

    def command_environment(self, credentials: Credentials, region: str) -> dict[str, str]:
        env = dict(self.environment)
        for key in (ACCESS_KEY_ID_ENV, SECRET_ACCESS_KEY_ENV, SESSION_TOKEN_ENV):
            env.pop(key, None)
        env.update(credentials.as_environment())
        env["AWS_REGION"] = region
        return env


def build_request(region: str | None, client_id: str | None, *, debug: bool) -> ProvisioningRequest:
    normalized_region = str(region or "").strip()
    if not normalized_region:
        raise MissingArgument("--aws-region is required.")
    normalized_client_id = str(client_id or "").strip()
    if not normalized_client_id:
        raise MissingArgument("clientId cannot be empty.")
    return ProvisioningRequest(region=normalized_region, client_id=normalized_client_id, debug=debug)
