"""
结业证书API
"""
from fastapi import APIRouter, Depends, HTTPException

from classroom.api.deps import get_store, http_error
from classroom.core.exceptions import ClassroomError
from classroom.models import Certificate
from classroom.services import CertificateEvaluator, ProgressEngine, ProgressStore


router = APIRouter(prefix="/certificates", tags=["结业证书"])


def serialize_certificate(certificate: Certificate) -> dict:
    return {
        "student_id": certificate.student_id,
        "class_id": certificate.class_id,
        "completion_date": certificate.completion_date.isoformat(),
        "modules_completed": certificate.modules_completed,
        "total_modules": certificate.total_modules,
        "assignments_graded": certificate.assignments_graded,
        "total_assignments": certificate.total_assignments,
        "average_grade": certificate.average_grade,
        "certificate_code": certificate.certificate_code,
    }


@router.post("/{class_id}")
def issue_certificate(
    class_id: str,
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """
    签发证书（已签发时返回原证书）

    Raises:
        409: 尚未满足签发条件
    """
    evaluator = CertificateEvaluator(store)
    try:
        certificate = evaluator.issue_certificate(ProgressEngine(store, user_id), class_id)
    except ClassroomError as e:
        raise http_error(e)
    return serialize_certificate(certificate)


@router.get("/{class_id}")
def get_certificate(
    class_id: str,
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """
    获取已签发的证书

    Raises:
        404: 尚未签发
    """
    certificate = CertificateEvaluator(store).get_certificate(user_id, class_id)
    if certificate is None:
        raise HTTPException(status_code=404, detail="证书尚未签发")
    return serialize_certificate(certificate)
