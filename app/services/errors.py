# app/services/errors.py
"""
Exceptions raised by the service layer.
Contention and resource exhaustion are NOT exceptions; those come back as result objects.
"""


class NotFoundError(LookupError):
    """An id supplied by the caller does not exist. Mapped to HTTP 404 in app.main."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")
