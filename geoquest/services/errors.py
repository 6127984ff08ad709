from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Raised when a service operation fails."""

    def __init__(self, message: str, status_code: int = 400, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload or {'error': message}
