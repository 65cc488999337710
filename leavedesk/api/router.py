from fastapi import APIRouter

from leavedesk.api.balances import router as balances_router
from leavedesk.api.directory import router as directory_router
from leavedesk.api.leaves import router as leaves_router
from leavedesk.api.policies import router as policies_router

api_router = APIRouter()
api_router.include_router(policies_router)
api_router.include_router(balances_router)
api_router.include_router(leaves_router)
api_router.include_router(directory_router)
