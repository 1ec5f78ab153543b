"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (properties,
statements, payouts). Nothing here knows about payouts.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError: Input or business rule validation failures
    - NotFoundError: Resource not found
    - ConflictError: State conflicts (concurrent modifications)
    - ExternalServiceError: Third-party service failures

Usage:
    from core.models import BaseModel
    from core.services import BaseService, ServiceResult
    from core.exceptions import ValidationError, NotFoundError
"""
