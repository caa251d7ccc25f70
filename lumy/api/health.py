from fastapi import APIRouter, Depends

from lumy.config.settings import config
from lumy.core.state import get_provisioner
from lumy.services.provisioner import BinaryProvisioner

router = APIRouter()


@router.get("/health")
async def health_check(provisioner: BinaryProvisioner = Depends(get_provisioner)):
    """Lightweight health check; never triggers provisioning"""
    binaries = provisioner.resolved
    return {
        "status": "ok",
        "version": config.api.version,
        "extractor": binaries.extractor_path if binaries else None,
        "transcoder": binaries.transcoder_path if binaries else None,
    }
