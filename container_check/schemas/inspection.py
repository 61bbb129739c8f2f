from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from container_check.models.security_check_model import ResponseTarget


# ---------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------
class ContainerFields(BaseModel):
    container_no: str = Field(..., description="Unique container number")
    company_name: str
    seal_no: str
    plate_no: str
    inspection_date: datetime

    class Config:
        str_strip_whitespace = True


class ContainerFieldsPatch(BaseModel):
    container_no: Optional[str] = None
    company_name: Optional[str] = None
    seal_no: Optional[str] = None
    plate_no: Optional[str] = None
    inspection_date: Optional[datetime] = None

    class Config:
        str_strip_whitespace = True


class ChecklistAnswer(BaseModel):
    checked: bool = False
    notes: Optional[str] = None


def build_answers(
    checklist: Dict[int, ChecklistAnswer], vehicle: Dict[int, ChecklistAnswer]
) -> Dict[ResponseTarget, ChecklistAnswer]:
    answers = {ResponseTarget.checklist(k): v for k, v in (checklist or {}).items()}
    answers.update({ResponseTarget.vehicle(k): v for k, v in (vehicle or {}).items()})
    return answers


# ---------------------------------------------------------
# Security stage payloads (sent as the "payload" form field)
# ---------------------------------------------------------
class InspectionCreate(BaseModel):
    container: ContainerFields
    inspector_name: str
    remarks: Optional[str] = None
    # keyed by catalog item id
    checklist: Dict[int, ChecklistAnswer] = {}
    vehicle: Dict[int, ChecklistAnswer] = {}

    class Config:
        str_strip_whitespace = True
        json_schema_extra = {
            "example": {
                "container": {
                    "container_no": "TCLU1234567",
                    "company_name": "PT Samudera",
                    "seal_no": "SL-0001",
                    "plate_no": "B 1234 XYZ",
                    "inspection_date": "2026-10-17T08:00:00",
                },
                "inspector_name": "Budi",
                "remarks": None,
                "checklist": {"1": {"checked": True, "notes": None}},
                "vehicle": {},
            }
        }

    def answers(self) -> Dict[ResponseTarget, ChecklistAnswer]:
        return build_answers(self.checklist, self.vehicle)


class InspectionUpdate(BaseModel):
    container: ContainerFieldsPatch = ContainerFieldsPatch()
    inspector_name: Optional[str] = None
    remarks: Optional[str] = None
    checklist: Dict[int, ChecklistAnswer] = {}
    vehicle: Dict[int, ChecklistAnswer] = {}
    deleted_photo_ids: List[int] = []

    class Config:
        str_strip_whitespace = True

    def answers(self) -> Dict[ResponseTarget, ChecklistAnswer]:
        return build_answers(self.checklist, self.vehicle)


# ---------------------------------------------------------
# Checker stage payloads
# ---------------------------------------------------------
class CheckerSubmit(BaseModel):
    utc_no: str
    inspector_name: str
    remarks: Optional[str] = None

    class Config:
        str_strip_whitespace = True


class CheckerUpdate(BaseModel):
    utc_no: str
    inspector_name: Optional[str] = None
    remarks: Optional[str] = None
    deleted_photo_ids: List[int] = []

    class Config:
        str_strip_whitespace = True
