"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks with no billing-specific logic.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - MetadataMixin: Flexible JSON metadata storage

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Managers (import from core.managers):
    - BaseQuerySet: QuerySet with time-based helpers

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status

Views (import from core.views):
    - health_check: Database/cache probe
"""
