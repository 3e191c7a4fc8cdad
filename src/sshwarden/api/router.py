"""Main router aggregation."""

from fastapi import APIRouter

from sshwarden.api.backups import router as backups_router
from sshwarden.api.hosts import router as hosts_router
from sshwarden.api.keys import router as keys_router
from sshwarden.api.permissions import router as permissions_router
from sshwarden.api.system import router as system_router

api_router = APIRouter()

api_router.include_router(keys_router, prefix="/keys", tags=["keys"])
api_router.include_router(hosts_router, prefix="/hosts", tags=["hosts"])
api_router.include_router(permissions_router, prefix="/permissions", tags=["permissions"])
api_router.include_router(backups_router, prefix="/backups", tags=["backups"])
api_router.include_router(system_router, prefix="/system", tags=["system"])
