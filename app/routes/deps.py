from fastapi import Request

from app.core.config import AppConfig
from app.services.notifier import Notifier
from app.storage.records import RecordStore
from app.storage.uploads import FileIntake


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_file_intake(request: Request) -> FileIntake:
    return request.app.state.file_intake


def get_consultations(request: Request) -> RecordStore:
    return request.app.state.records["consultations"]


def get_conversations(request: Request) -> RecordStore:
    return request.app.state.records["conversations"]


def get_feedback(request: Request) -> RecordStore:
    return request.app.state.records["feedback"]


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"
