from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from . import dependencies, launcher, registry
from .config import Credentials, DeviceIdentity, ImageReference, ProvisioningRequest, ProvisionerSettings
from .errors import ProvisionError


LOGGER = logging.getLogger("edge_provisioner.workflow")


class ProvisioningState(str, enum.Enum):
    VALIDATING = "validating"
    INSTALLING_DEPENDENCIES = "installing_dependencies"
    AUTHENTICATING = "authenticating"
    RESOLVING_IMAGE = "resolving_image"
    LAUNCHING = "launching"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProvisioningResult:
    request: ProvisioningRequest
    identity: DeviceIdentity
    image: ImageReference
    container_id: str
    image_pulled: bool


@dataclass
class ProvisioningWorkflow:
    """Runs the provisioning steps in order and stops at the first failure.

    Nothing is rolled back: a completed install stays installed when a later
    step fails.
    """

    request: ProvisioningRequest
    credentials: Credentials
    settings: ProvisionerSettings
    identity_factory: Callable[[], DeviceIdentity] = DeviceIdentity.generate
    sleep: Callable[[float], None] = time.sleep
    state: ProvisioningState = ProvisioningState.VALIDATING
    history: list[ProvisioningState] = field(default_factory=lambda: [ProvisioningState.VALIDATING])

    def _enter(self, state: ProvisioningState) -> None:
        LOGGER.debug("Provisioning state %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def run(self) -> ProvisioningResult:
        verbose = self.request.debug
        image = self.settings.image_for(self.request.region)
        env = self.settings.command_environment(self.credentials, self.request.region)
        try:
            self._enter(ProvisioningState.INSTALLING_DEPENDENCIES)
            dependencies.ensure_dependencies(verbose=verbose)

            identity = self.identity_factory()
            LOGGER.debug("Generated thing name %s", identity.thing_name)

            self._enter(ProvisioningState.AUTHENTICATING)
            registry.authenticate(image, env=env, verbose=verbose)

            self._enter(ProvisioningState.RESOLVING_IMAGE)
            pulled = registry.ensure_image(image, env=env, verbose=verbose)

            self._enter(ProvisioningState.LAUNCHING)
            container_id = launcher.launch_container(
                image,
                self.credentials,
                identity,
                self.request,
                self.settings,
                env=env,
                sleep=self.sleep,
            )
        except ProvisionError:
            self._enter(ProvisioningState.FAILED)
            raise

        self._enter(ProvisioningState.DONE)
        return ProvisioningResult(
            request=self.request,
            identity=identity,
            image=image,
            container_id=container_id,
            image_pulled=pulled,
        )
