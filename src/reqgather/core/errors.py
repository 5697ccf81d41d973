"""
Error taxonomy for the storage core.

Collaborators (REST routes, MCP tools, the CLI) must be able to tell these
apart:

- Not found     → never raised; operations return None / False
- Invalid input → ValidationError, raised before anything is persisted
- Storage fault → PersistenceError, raised from the underlying I/O or DB error
"""

from pydantic import ValidationError as PydanticValidationError


class ReqGatherError(Exception):
    """Base class for all Requirements Gatherer errors."""


class ValidationError(ReqGatherError, ValueError):
    """Caller-supplied data violates a field constraint."""

    def __init__(self, message: str, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> "ValidationError":
        """Build from a pydantic error, keeping one line per failed field."""
        details = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            details.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))

        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in exc.errors()
        ]
        return cls("; ".join(details) or "Invalid input", errors=errors)


class PersistenceError(ReqGatherError):
    """The underlying disk or database operation failed."""
