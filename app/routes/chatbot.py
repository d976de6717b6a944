"""
Chatbot support routes.

Serves the static conversation flow, validates single answers while the user
types, stores finished conversations and feedback, and sends the German
program application email.
"""
import json
import logging
import time
from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.core.config import AppConfig
from app.core.validation import missing_fields, run_rule, validate_date
from app.observability.logger import log_error, log_event, utc_timestamp
from app.routes.deps import client_ip, get_config, get_conversations, get_feedback, get_notifier
from app.schemas.chatbot import (
    ConversationRequest,
    FeedbackRequest,
    GermanProgramRequest,
    MeetingRequest,
    ValidateFieldRequest,
)
from app.services.notifier import Notifier
from app.storage.records import RecordStore, new_record_id

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_FLOW_PATH = Path(__file__).resolve().parent.parent / "data" / "chatbot_flow.json"


def _flow_path(config: AppConfig) -> Path:
    return Path(config.chatbot_flow_path) if config.chatbot_flow_path else DEFAULT_FLOW_PATH


@router.get("/chatbot/flow")
async def get_chatbot_flow(config: AppConfig = Depends(get_config)) -> JSONResponse:
    flow_path = _flow_path(config)
    if not flow_path.exists():
        logger.error(f"Flow file does not exist at: {flow_path}")
        return JSONResponse(status_code=404, content={
            "success": False,
            "error": "Chatbot flow file not found",
        })

    try:
        flow = json.loads(flow_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        log_error(exc, {"operation": "load_chatbot_flow"})
        return JSONResponse(status_code=500, content={
            "success": False,
            "error": "Failed to load chatbot flow",
            "message": str(exc) if config.is_development else "Chatbot flow unavailable",
        })

    metadata = flow.get("metadata") if isinstance(flow, dict) else None
    return JSONResponse(status_code=200, content={
        "success": True,
        "data": flow,
        "timestamp": utc_timestamp(),
        "version": (metadata or {}).get("version", "1.0"),
    })


@router.post("/chatbot/validate")
async def validate_user_input(body: ValidateFieldRequest) -> JSONResponse:
    result = run_rule(body.validationType, body.value)
    logger.debug(f"Validation result for {body.field}: {result}")
    return JSONResponse(status_code=200, content=result)


@router.post("/chatbot/save-conversation")
async def save_conversation(
    request: Request,
    body: ConversationRequest,
    conversations: RecordStore = Depends(get_conversations),
) -> JSONResponse:
    record = {
        "id": new_record_id("CONV"),
        "timestamp": utc_timestamp(),
        **body.model_dump(),
        "ipAddress": client_ip(request),
        "userAgent": request.headers.get("user-agent"),
    }
    try:
        conversations.append(record)
    except OSError as exc:
        log_error(exc, {"operation": "save_conversation"})
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Failed to save conversation data",
        })

    log_event("conversation_saved", conversation_id=record["id"], completed=body.completed)
    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "Conversation data saved successfully",
        "data": {"id": record["id"], "timestamp": record["timestamp"]},
    })


@router.get("/chatbot/analytics")
async def get_chatbot_analytics(conversations: RecordStore = Depends(get_conversations)) -> JSONResponse:
    records = conversations.list()
    total = len(records)
    completed = sum(1 for r in records if r.get("completed"))
    steps = [len(r["responses"]) for r in records if isinstance(r.get("responses"), dict)]

    analytics = {
        "totalConversations": total,
        "completedConversations": completed,
        "completionRate": round(completed / total * 100, 1) if total else 0,
        "averageSteps": round(sum(steps) / len(steps), 1) if steps else 0,
        "lastUpdated": utc_timestamp(),
    }
    return JSONResponse(status_code=200, content={"success": True, "data": analytics})


@router.post("/chatbot/feedback")
async def save_feedback(
    request: Request,
    body: FeedbackRequest,
    feedback: RecordStore = Depends(get_feedback),
) -> JSONResponse:
    entry = {
        "id": new_record_id("FB"),
        "conversationId": body.conversationId,
        "rating": body.rating,
        "feedback": body.feedback,
        "timestamp": utc_timestamp(),
        "ipAddress": client_ip(request),
    }
    try:
        feedback.append(entry)
    except OSError as exc:
        log_error(exc, {"operation": "save_feedback"})
        return JSONResponse(status_code=500, content={"success": False, "message": "Failed to save feedback"})

    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "Feedback saved successfully",
        "data": {"id": entry["id"]},
    })


@router.post("/send-german-program-email")
async def send_german_program_email(
    body: GermanProgramRequest,
    config: AppConfig = Depends(get_config),
    notifier: Notifier = Depends(get_notifier),
) -> JSONResponse:
    data = body.model_dump()
    missing = missing_fields(data, ("name", "age", "email", "purpose"))
    if missing:
        return JSONResponse(status_code=400, content={
            "success": False,
            "message": "Missing required fields",
            "missingFields": missing,
        })

    result = notifier.send("german_program", [config.admin_email], data, cc=[body.email])
    if not result.success:
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Failed to send email",
            "error": result.error if config.is_development else "Email service temporarily unavailable",
        })

    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "German Program email sent successfully",
        "data": {
            "timestamp": utc_timestamp(),
            "recipient": body.email,
            "name": body.name,
            "messageId": result.message_id,
        },
    })


@router.post("/schedule-meeting")
async def schedule_meeting(body: MeetingRequest, config: AppConfig = Depends(get_config)) -> JSONResponse:
    data = body.model_dump()
    missing = missing_fields(data, ("name", "email", "date", "time"))
    if missing:
        return JSONResponse(status_code=400, content={
            "success": False,
            "message": "Missing required fields for meeting",
            "missingFields": missing,
        })

    date_check = validate_date(body.date)
    if not date_check["valid"]:
        return JSONResponse(status_code=400, content={"success": False, "message": date_check["message"]})

    # No calendar integration: the link is a placeholder the team replaces on confirmation
    stamp = int(time.time() * 1000)
    prefix = "DEV" if config.is_development else "MEET"
    meeting = {
        **data,
        "meetingId": f"{prefix}-{stamp}",
        "meetingLink": f"https://meet.google.com/{prefix.lower()}-{stamp}",
        "timestamp": utc_timestamp(),
    }
    log_event("meeting_requested", meeting_id=meeting["meetingId"])
    return JSONResponse(status_code=200, content={
        "success": True,
        "message": "Meeting scheduled successfully" + (" (DEV MODE)" if config.is_development else ""),
        "data": meeting,
    })
