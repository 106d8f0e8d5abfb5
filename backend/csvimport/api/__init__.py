from fastapi import APIRouter

from csvimport.api import imports

router = APIRouter()

router.include_router(imports.router, prefix="/imports", tags=["imports"])
