"""Error kinds raised by the store and reported by the service facade."""

from __future__ import annotations


class OrgchartError(ValueError):
    code = "invalid"

    def to_result(self) -> dict[str, object]:
        return {"success": False, "error": str(self), "code": self.code}


class InvalidFieldError(OrgchartError):
    code = "invalid"


class NotFoundError(OrgchartError):
    code = "not_found"


class SelfReferenceError(OrgchartError):
    code = "self_reference"


class DuplicateRelationshipError(OrgchartError):
    code = "duplicate"


class HierarchyCycleError(OrgchartError):
    code = "cycle"


class UnauthorizedError(OrgchartError):
    code = "unauthorized"


class ForbiddenError(OrgchartError):
    code = "forbidden"
