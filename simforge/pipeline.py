"""
Deployment Pipeline

Sequences a single deployment of a package onto a simulator:
1. Resolve (copy .app / extract .ipa into a scratch workspace)
2. Convert (run the simulator conversion tool on the bundle)
3. Sign (embedded frameworks, then the main bundle)
4. Boot (ensure the simulator is running)
5. Install
6. Identify (read CFBundleIdentifier)
7. Launch

Any failure stops the run. The scratch workspace is removed whatever
happens, and the caller always receives exactly one DeploymentOutcome.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from simforge.bundle.manifest import read_bundle_identifier
from simforge.bundle.resolver import BundleResolver, PackageReference, ResolvedBundle
from simforge.bundle.signer import CodeSigner, SigningIdentity
from simforge.bundle.workspace import ScratchWorkspace
from simforge.config import SimforgeConfig
from simforge.device.simulator import SimulatorController
from simforge.exceptions import ConversionError, SimforgeError
from simforge.executor import ProcessRunner
from simforge.utils import get_utc_now, seconds_since

logger = logging.getLogger(__name__)


class DeploymentStep(Enum):
    """Pipeline steps, in execution order."""
    RESOLVE = "resolve"
    CONVERT = "convert"
    SIGN = "sign"
    BOOT = "boot"
    INSTALL = "install"
    IDENTIFY = "identify"
    LAUNCH = "launch"


STEP_DESCRIPTIONS = {
    DeploymentStep.RESOLVE: "preparing the app bundle",
    DeploymentStep.CONVERT: "converting the app for the simulator",
    DeploymentStep.SIGN: "signing the app",
    DeploymentStep.BOOT: "starting the simulator",
    DeploymentStep.INSTALL: "installing the app",
    DeploymentStep.IDENTIFY: "reading the bundle identifier",
    DeploymentStep.LAUNCH: "launching the app",
}


@dataclass
class DeploymentOutcome:
    """Terminal result of one deployment run."""

    success: bool
    message: str
    failed_step: Optional[DeploymentStep] = None
    error: Optional[Exception] = None
    completed_steps: list[DeploymentStep] = field(default_factory=list)
    bundle_identifier: Optional[str] = None
    workspace_path: Optional[Path] = None
    duration_s: float = 0.0

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "failed_step": self.failed_step.value if self.failed_step else None,
            "error_type": type(self.error).__name__ if self.error else None,
            "error_details": self.error.details if isinstance(self.error, SimforgeError) else {},
            "completed_steps": [s.value for s in self.completed_steps],
            "bundle_identifier": self.bundle_identifier,
            "duration_s": self.duration_s,
        }


class DeploymentPipeline:
    """Deploys one package onto one simulator per call to deploy()."""

    def __init__(
        self,
        config: Optional[SimforgeConfig] = None,
        runner: Optional[ProcessRunner] = None,
        resolver: Optional[BundleResolver] = None,
        signer: Optional[CodeSigner] = None,
        controller: Optional[SimulatorController] = None,
    ):
        self.config = config or SimforgeConfig()
        self.runner = runner or ProcessRunner()
        self.resolver = resolver or BundleResolver(self.runner, self.config.unzip_path)
        self.signer = signer or CodeSigner(self.runner, self.config.codesign_path)
        self.controller = controller or SimulatorController(self.runner, self.config)

    def deploy(
        self,
        package: Union[PackageReference, str, Path],
        identity: SigningIdentity,
        udid: str,
    ) -> DeploymentOutcome:
        """
        Run the whole pipeline.

        Args:
            package: Package reference or path to a .app / .ipa.
            identity: Identity used for every codesign call.
            udid: Target simulator.

        Returns:
            DeploymentOutcome. Never raises.
        """
        started = get_utc_now()
        completed: list[DeploymentStep] = []
        step = DeploymentStep.RESOLVE
        bundle: Optional[ResolvedBundle] = None
        workspace = ScratchWorkspace(self.config.scratch_root)

        try:
            with workspace:
                if not isinstance(package, PackageReference):
                    package = PackageReference.from_path(package)

                bundle = self.resolver.resolve(package, workspace.path)
                completed.append(step)

                step = DeploymentStep.CONVERT
                self.convert(bundle)
                completed.append(step)

                step = DeploymentStep.SIGN
                self.signer.sign(bundle.path, identity)
                completed.append(step)

                step = DeploymentStep.BOOT
                self.controller.ensure_running(udid)
                completed.append(step)

                step = DeploymentStep.INSTALL
                self.controller.install(udid, bundle.path)
                completed.append(step)

                step = DeploymentStep.IDENTIFY
                bundle.bundle_identifier = read_bundle_identifier(
                    bundle.path, self.runner, self.config.plistbuddy_path
                )
                completed.append(step)

                step = DeploymentStep.LAUNCH
                self.controller.launch(udid, bundle.bundle_identifier)
                completed.append(step)

        except SimforgeError as e:
            return self._failure(step, e, e.message, completed, bundle, workspace, started)
        except Exception as e:
            logger.exception("Unexpected error while %s", STEP_DESCRIPTIONS[step])
            return self._failure(step, e, str(e) or type(e).__name__, completed, bundle, workspace, started)

        logger.info("Successfully processed and installed the app!")
        return DeploymentOutcome(
            success=True,
            message=f"Launched {bundle.bundle_identifier} on {udid}",
            completed_steps=completed,
            bundle_identifier=bundle.bundle_identifier,
            workspace_path=workspace.path,
            duration_s=seconds_since(started),
        )

    def convert(self, bundle: ResolvedBundle) -> None:
        """Run the simulator conversion tool on the bundle in place."""
        logger.info("==> Converting app for simulator...")
        result = self.runner.run(self.config.converter_path, [bundle.path])
        if not result.success:
            raise ConversionError(bundle.path, result.return_code, result.error_text)

    def _failure(
        self,
        step: DeploymentStep,
        error: Exception,
        detail: str,
        completed: list[DeploymentStep],
        bundle: Optional[ResolvedBundle],
        workspace: ScratchWorkspace,
        started,
    ) -> DeploymentOutcome:
        message = f"Failed while {STEP_DESCRIPTIONS[step]}: {detail}"
        logger.error("Error: %s", message)
        return DeploymentOutcome(
            success=False,
            message=message,
            failed_step=step,
            error=error,
            completed_steps=completed,
            bundle_identifier=bundle.bundle_identifier if bundle else None,
            workspace_path=workspace.path,
            duration_s=seconds_since(started),
        )
