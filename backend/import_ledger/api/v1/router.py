from fastapi import APIRouter

from import_ledger.api.v1 import import_templates, imports, internal_imports

api_router = APIRouter()

api_router.include_router(imports.router, prefix="/imports", tags=["imports"])
api_router.include_router(import_templates.router, prefix="/import-templates", tags=["imports"])
api_router.include_router(internal_imports.router, prefix="/internal/imports", tags=["internal"])
