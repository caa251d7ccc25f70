from dataclasses import dataclass

from lumy.config.settings import Config, config
from lumy.services.credentials import CredentialResolver
from lumy.services.info import VideoInfoService
from lumy.services.orchestrator import DownloadOrchestrator
from lumy.services.provisioner import BinaryProvisioner


@dataclass
class RuntimeState:
    """Centralized runtime state"""
    provisioner: BinaryProvisioner
    resolver: CredentialResolver
    info_service: VideoInfoService
    orchestrator: DownloadOrchestrator

    @classmethod
    def from_config(cls, cfg: Config) -> "RuntimeState":
        provisioner = BinaryProvisioner(cfg.binaries)
        resolver = CredentialResolver(cfg.cookies)
        return cls(
            provisioner=provisioner,
            resolver=resolver,
            info_service=VideoInfoService(cfg, resolver, provisioner),
            orchestrator=DownloadOrchestrator(cfg, resolver, provisioner),
        )


state = RuntimeState.from_config(config)


def get_info_service() -> VideoInfoService:
    return state.info_service


def get_orchestrator() -> DownloadOrchestrator:
    return state.orchestrator


def get_provisioner() -> BinaryProvisioner:
    return state.provisioner
