# Import every model so relationship() string targets resolve wherever one is used.
from container_check.models.users_model import User
from container_check.models.checklist_model import (
    ChecklistCategory,
    ChecklistItem,
    VehicleInspectionCategory,
    VehicleInspectionItem,
)
from container_check.models.container_model import Container
from container_check.models.security_check_model import (
    ResponseTarget,
    SecurityCheck,
    SecurityCheckResponse,
    SecurityCheckResponseHistory,
)
from container_check.models.checker_data_model import CheckerData
from container_check.models.photo_model import Photo
from container_check.models.inspector_name_model import InspectorName
