from fastapi import APIRouter

from docintel.api.routes import template_matching, templates, uploads

api_router = APIRouter()

api_router.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(template_matching.router, prefix="/template-matching", tags=["Template Matching"])
