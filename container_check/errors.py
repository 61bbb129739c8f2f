"""
Error taxonomy of the inspection workflow.

Every error carries a stable ``kind`` and a ``payload`` dict; the message is
for humans only. ``main.py`` renders them into the response envelope.
"""
from typing import Any, Dict, Optional


def _target_key(target):
    return (target.kind, target.item_id)


class InspectionError(Exception):
    kind = "InspectionError"
    status_code = 400

    def __init__(self, message: str, **payload: Any):
        super().__init__(message)
        self.message = message
        self.payload: Dict[str, Any] = payload

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, **self.payload}


class Unauthorized(InspectionError):
    kind = "Unauthorized"
    status_code = 403

    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(message)


class NotFound(InspectionError):
    kind = "NotFound"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None, message: Optional[str] = None):
        super().__init__(message or f"{entity} not found", entity=entity, id=entity_id)


class ValidationFailed(InspectionError):
    kind = "ValidationFailed"
    status_code = 422

    def __init__(self, field: str, message: str):
        super().__init__(message, field=field)


class DuplicateContainer(InspectionError):
    kind = "DuplicateContainer"
    status_code = 409

    def __init__(self, container_no: str):
        super().__init__(
            f'Container number "{container_no}" is already in use.', container_no=container_no
        )


class DuplicateSeal(InspectionError):
    kind = "DuplicateSeal"
    status_code = 409

    def __init__(self, seal_no: str):
        super().__init__(f'Seal number "{seal_no}" is already in use.', seal_no=seal_no)


class DuplicateUTC(InspectionError):
    kind = "DuplicateUTC"
    status_code = 409

    def __init__(self, utc_no: str):
        super().__init__(f'UTC number "{utc_no}" is already in use.', utc_no=utc_no)


class IncompleteChecklist(InspectionError):
    kind = "IncompleteChecklist"
    status_code = 422

    def __init__(self, missing=(), unchecked=()):
        # targets are rendered as {"kind", "item_id"} so checklist and vehicle ids never collide
        missing = [{"kind": t.kind, "item_id": t.item_id} for t in sorted(missing, key=_target_key)]
        unchecked = [{"kind": t.kind, "item_id": t.item_id} for t in sorted(unchecked, key=_target_key)]
        super().__init__(
            "Every checklist item must be answered and checked before submitting",
            missing=missing,
            unchecked=unchecked,
        )


class SecurityInspectionIncomplete(InspectionError):
    kind = "SecurityInspectionIncomplete"
    status_code = 409

    def __init__(self, outstanding_count: int):
        super().__init__(
            f"Security inspection still has {outstanding_count} unchecked item(s)",
            outstanding_count=outstanding_count,
        )
        self.outstanding_count = outstanding_count


class PhotoCountOutOfRange(InspectionError):
    kind = "PhotoCountOutOfRange"
    status_code = 422

    def __init__(self, min_count: int, max_count: int, actual: int):
        super().__init__(
            f"Photo count must be between {min_count} and {max_count}; got {actual}",
            min=min_count,
            max=max_count,
            actual=actual,
        )


class PhotoUploadFailed(InspectionError):
    kind = "PhotoUploadFailed"
    status_code = 502

    def __init__(self, filename: str, cause: str):
        super().__init__(f"Failed to upload photo {filename}: {cause}", filename=filename, cause=cause)


class PrerequisiteMissing(InspectionError):
    kind = "PrerequisiteMissing"
    status_code = 409

    def __init__(self, message: str = "Container has not been inspected by Security yet"):
        super().__init__(message)


class AlreadyChecked(InspectionError):
    kind = "AlreadyChecked"
    status_code = 409

    def __init__(self, container_id: int):
        super().__init__("Container already has checker data", container_id=container_id)


class ForeignKeyConstraint(InspectionError):
    kind = "ForeignKeyConstraint"
    status_code = 409

    def __init__(self, message: str = "Record is still referenced by other data and cannot be deleted"):
        super().__init__(message)
