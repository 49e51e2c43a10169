"""
Shared module for cross-cutting concerns of the REST API.

STRUCTURE:
- shared.security: Authentication and authorization
  - auth.py: JWT signing/verification, current_user_context, require_roles
  - password.py: Bcrypt hashing
  - rate_limit.py: slowapi limiter for the auth endpoints

- shared.infrastructure: Database and request correlation
  - db.py: SQLAlchemy engine/sessions, safe_commit()
  - correlation.py: X-Request-ID middleware and log filter

- shared.config: Configuration
  - settings.py: Environment config (pydantic-settings)
  - logging.py: Structured logging
  - constants.py: Roles, OrderStatus, Permissions, limits

- shared.utils: Utilities
  - exceptions.py: HTTP exceptions with auto-logging
  - validators.py: Table label normalization, URL validation
  - schemas.py: Pydantic request/response schemas and the response envelope

IMPORT EXAMPLES:
    from shared.security.auth import current_user_context
    from shared.infrastructure.db import get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import Roles, OrderStatus
    from shared.utils.exceptions import NotFoundError, ValidationError
"""
