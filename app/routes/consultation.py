import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from app.core.config import AppConfig
from app.core.validation import validate_consultation_form
from app.observability.logger import log_error, log_event, log_warning, utc_timestamp
from app.routes.deps import client_ip, get_config, get_consultations, get_file_intake, get_notifier
from app.schemas.consultation import VALID_STATUSES, Pagination, StatusUpdateRequest
from app.services.emailer import Attachment
from app.services.notifier import Notifier
from app.storage.records import RecordStore, new_record_id
from app.storage.uploads import FileIntake, FileRejected, StoredFile

logger = logging.getLogger(__name__)

router = APIRouter()


def _send_booking_emails(notifier: Notifier, admin_email: str, record: Dict[str, Any], resume: Optional[StoredFile]) -> Dict[str, Any]:
    """Admin notice (with the resume attached) and applicant confirmation; one delivery is enough."""
    attachments = []
    if resume is not None:
        attachments.append(Attachment(filename=resume.original_name, path=resume.stored_path, content_type=resume.mime_type))

    admin = notifier.send("consultation_admin", [admin_email], record, attachments=attachments)
    user = notifier.send("consultation_user", [record["email"]], record)

    result = {
        "success": admin.success or user.success,
        "adminMessageId": admin.message_id,
        "userMessageId": user.message_id,
    }
    if not (admin.success and user.success):
        result["warnings"] = {"admin": admin.error, "user": user.error}
    return result


@router.post("/book")
async def book_consultation(
    request: Request,
    fullName: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    age: Optional[str] = Form(None),
    education: Optional[str] = Form(None),
    experience: Optional[str] = Form(None),
    currentStatus: Optional[str] = Form(None),
    interestedService: Optional[str] = Form(None),
    careerGoals: Optional[str] = Form(None),
    preferredTime: Optional[str] = Form(None),
    preferredMode: Optional[str] = Form(None),
    additionalInfo: Optional[str] = Form(None),
    resume: Optional[UploadFile] = File(None),
    config: AppConfig = Depends(get_config),
    consultations: RecordStore = Depends(get_consultations),
    intake: FileIntake = Depends(get_file_intake),
    notifier: Notifier = Depends(get_notifier),
) -> JSONResponse:
    """
    Book a consultation from the multipart form, with an optional resume.

    The booking is stored best-effort; a failed write or a failed email does
    not fail the request.
    """
    form = {
        "fullName": fullName,
        "email": email,
        "phone": phone,
        "age": age,
        "education": education,
        "experience": experience,
        "currentStatus": currentStatus,
        "interestedService": interestedService,
        "careerGoals": careerGoals,
        "preferredTime": preferredTime,
        "preferredMode": preferredMode,
        "additionalInfo": additionalInfo,
    }

    errors = validate_consultation_form(form)
    if errors:
        return JSONResponse(status_code=400, content={
            "success": False,
            "message": "Invalid consultation form",
            "errors": errors,
        })

    stored: Optional[StoredFile] = None
    if resume is not None and resume.filename:
        try:
            stored = await intake.accept(resume)
        except FileRejected as exc:
            return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})

    try:
        record = {
            "id": new_record_id("CONS"),
            **{k: (v.strip() if isinstance(v, str) else v) for k, v in form.items()},
            "resume": stored.to_record() if stored else None,
            "status": "pending",
            "submittedAt": utc_timestamp(),
            "ipAddress": client_ip(request),
            "userAgent": request.headers.get("user-agent"),
        }

        try:
            consultations.append(record)
        except OSError as exc:
            log_warning("Consultation save failed (continuing)", {"consultation_id": record["id"], "error": str(exc)})

        emails = _send_booking_emails(notifier, config.admin_email, record, stored)
    except Exception as exc:
        log_error(exc, {"operation": "book_consultation"})
        if stored is not None:
            intake.discard(stored.stored_path)
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Failed to book consultation",
            "error": str(exc) if config.is_development else "Internal server error",
        })

    log_event(
        "consultation_booked",
        consultation_id=record["id"],
        service=record["interestedService"],
        has_resume=stored is not None,
        email_sent=emails["success"],
    )

    data = {
        "consultationId": record["id"],
        "submittedAt": record["submittedAt"],
        "status": "pending",
    }
    if emails["success"]:
        data["estimatedResponseTime"] = "24 hours"
        message = "Consultation booked successfully"
    else:
        data["emailWarning"] = "Email notification failed - admin will be notified manually"
        message = "Consultation booked successfully, but notification email failed"

    return JSONResponse(status_code=200, content={"success": True, "message": message, "data": data})


@router.get("/bookings")
async def get_consultation_bookings(
    status: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(10),
    consultations: RecordStore = Depends(get_consultations),
) -> JSONResponse:
    page = max(1, page)
    limit = max(1, min(limit, 100))

    if status and status != "all":
        matching = consultations.list(lambda r: r.get("status") == status)
    else:
        matching = consultations.list()

    start = (page - 1) * limit
    pagination = Pagination(
        page=page,
        limit=limit,
        total=len(matching),
        pages=-(-len(matching) // limit),
    )
    return JSONResponse(status_code=200, content={
        "success": True,
        "data": {
            "consultations": matching[start:start + limit],
            "pagination": pagination.model_dump(),
        },
    })


@router.put("/{consultation_id}/status")
async def update_consultation_status(
    consultation_id: str,
    body: StatusUpdateRequest,
    consultations: RecordStore = Depends(get_consultations),
    notifier: Notifier = Depends(get_notifier),
) -> JSONResponse:
    if body.status not in VALID_STATUSES:
        return JSONResponse(status_code=400, content={
            "success": False,
            "message": "Invalid status",
            "validStatuses": list(VALID_STATUSES),
        })

    existing = consultations.get(consultation_id)
    if existing is None:
        return JSONResponse(status_code=404, content={"success": False, "message": "Consultation not found"})

    try:
        updated = consultations.update(consultation_id, {
            "status": body.status,
            "notes": body.notes or existing.get("notes"),
            "updatedAt": utc_timestamp(),
            "updatedBy": "admin",
        })
    except OSError as exc:
        log_error(exc, {"operation": "update_consultation_status", "consultation_id": consultation_id})
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Failed to update consultation status",
        })

    if updated is None:
        return JSONResponse(status_code=404, content={"success": False, "message": "Consultation not found"})

    if body.status == "confirmed" and updated.get("email"):
        notifier.send("consultation_confirmed", [updated["email"]], updated)

    log_event("consultation_status_updated", consultation_id=consultation_id, status=body.status)
    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "Consultation status updated successfully",
        "data": updated,
    })


@router.delete("/{consultation_id}")
async def delete_consultation(
    consultation_id: str,
    consultations: RecordStore = Depends(get_consultations),
    intake: FileIntake = Depends(get_file_intake),
) -> JSONResponse:
    try:
        removed = consultations.delete(consultation_id)
    except OSError as exc:
        log_error(exc, {"operation": "delete_consultation", "consultation_id": consultation_id})
        return JSONResponse(status_code=500, content={"success": False, "message": "Failed to delete consultation"})

    if removed is None:
        return JSONResponse(status_code=404, content={"success": False, "message": "Consultation not found"})

    resume = removed.get("resume") or {}
    if intake.discard(resume.get("path")):
        logger.info(f"Resume file deleted: {resume.get('filename')}")

    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "Consultation deleted successfully",
        "deletedId": consultation_id,
    })


@router.get("/health")
async def consultation_health() -> JSONResponse:
    return JSONResponse(status_code=200, content={
        "success": True,
        "service": "Consultation Booking Service",
        "status": "Active",
        "timestamp": utc_timestamp(),
    })
