"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the authentication and chat apps.
Nothing in here knows about conversations or messages.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes
    - ValidationError, NotFoundError, PermissionDeniedError,
      BlockedRelationshipError, InvalidStateError

Views (import from core.views):
    - health_check: Liveness/readiness endpoint
    - error_response: Failed ServiceResult -> DRF Response
"""
