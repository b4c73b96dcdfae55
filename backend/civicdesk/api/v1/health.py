"""
GET /health — load balancer health check endpoint.

No authentication required. Reports DB connectivity, the loaded category
vocabulary version and whether the photo classifier is configured.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from civicdesk.core.config import get_settings
from civicdesk.core.db import Database, get_database
from civicdesk.core.deps import category_vocabulary
from civicdesk.engine.routing import CategoryVocabulary

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    db: str
    vocabulary_version: int
    classifier: str


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(
    database: Database = Depends(get_database),
    vocabulary: CategoryVocabulary = Depends(category_vocabulary),
) -> HealthResponse:
    db_ok = await database.ping()
    return HealthResponse(
        status="ok",
        db="ok" if db_ok else "error",
        vocabulary_version=vocabulary.version,
        classifier="configured" if get_settings().classifier_configured else "disabled",
    )
