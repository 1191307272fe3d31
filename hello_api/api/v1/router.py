from fastapi import APIRouter

from hello_api.api.v1.hello import router as hello_router
from hello_api.api.v1.users import router as users_router

v1_router = APIRouter()

v1_router.include_router(hello_router, tags=["Hello"])
v1_router.include_router(users_router, tags=["Users"])
