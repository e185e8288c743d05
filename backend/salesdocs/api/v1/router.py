from __future__ import annotations

from fastapi import APIRouter, Depends

from salesdocs.api.v1.endpoints import documents, drafts, numbering, projects
from salesdocs.core.security import require_actor


api_router = APIRouter(dependencies=[Depends(require_actor)])

api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(drafts.router, prefix="/projects", tags=["drafts"])
api_router.include_router(documents.router, tags=["documents"])
api_router.include_router(numbering.router, prefix="/numbering", tags=["numbering"])
