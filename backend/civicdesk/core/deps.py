"""
Request-scoped service factories for the API layer.
"""
from datetime import tzinfo
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.core.config import get_settings
from civicdesk.core.db import get_db
from civicdesk.engine.analytics import AnalyticsAggregator
from civicdesk.engine.routing import CategoryVocabulary, get_vocabulary
from civicdesk.services.classifier import CategoryClassifier
from civicdesk.services.complaints import ComplaintService


def category_vocabulary() -> CategoryVocabulary:
    return get_vocabulary(get_settings().category_vocabulary_path)


def reporting_timezone() -> tzinfo:
    return ZoneInfo(get_settings().reporting_timezone)


def complaint_service(
    db: AsyncSession = Depends(get_db),
    vocabulary: CategoryVocabulary = Depends(category_vocabulary),
) -> ComplaintService:
    return ComplaintService(db, vocabulary)


def analytics_aggregator(
    db: AsyncSession = Depends(get_db),
    vocabulary: CategoryVocabulary = Depends(category_vocabulary),
    tz: tzinfo = Depends(reporting_timezone),
) -> AnalyticsAggregator:
    return AnalyticsAggregator(db, vocabulary, tz)


def category_classifier(
    vocabulary: CategoryVocabulary = Depends(category_vocabulary),
) -> CategoryClassifier:
    settings = get_settings()
    return CategoryClassifier(settings.gemini_api_key, settings.gemini_model, vocabulary)
