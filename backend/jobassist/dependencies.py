"""Shared FastAPI dependencies."""
from fastapi import Depends, Request

from .ai_client import AIClient, get_ai_client
from .mailbox import MailboxGateway
from .services.classification_service import Classifier


def get_mailbox_gateway(request: Request) -> MailboxGateway:
    """The gateway chosen at startup (see main.lifespan)."""
    return request.app.state.mailbox_gateway


def get_classifier(ai: AIClient = Depends(get_ai_client)) -> Classifier:
    return Classifier(ai)
