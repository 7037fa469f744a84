from app.db.base import Base
from app.models.assignment import RecAssignment
from app.models.assignment_status_history import RecAssignmentStatusHistory
from app.models.candidate import RecCandidate
from app.models.document import RecDocument
from app.models.document_requirement import RecDocumentRequirement
from app.models.document_verification import RecDocumentVerification
from app.models.interview import RecInterview
from app.models.interview_status_history import RecInterviewStatusHistory
from app.models.platform_person import DimPerson
from app.models.processing_history import RecProcessingHistory
from app.models.processing_step import RecProcessingStep
from app.models.project import RecProject
from app.models.project_role import RecProjectRole
from app.models.status import RecStatusMain, RecStatusSub

__all__ = [
    "Base",
    "DimPerson",
    "RecAssignment",
    "RecAssignmentStatusHistory",
    "RecCandidate",
    "RecDocument",
    "RecDocumentRequirement",
    "RecDocumentVerification",
    "RecInterview",
    "RecInterviewStatusHistory",
    "RecProcessingHistory",
    "RecProcessingStep",
    "RecProject",
    "RecProjectRole",
    "RecStatusMain",
    "RecStatusSub",
]
