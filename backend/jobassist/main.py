"""FastAPI application entrypoint."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .database import init_db
from .errors import register_exception_handlers
from .mailbox import build_mailbox_gateway
from .routers import ai, ai_usage, emails, gmail, profiles

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    app.state.mailbox_gateway = build_mailbox_gateway(settings)
    yield


app = FastAPI(
    title="Job Search Assistant API",
    description="Career profiles, AI drafting and a classified copy of the user's mailbox",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(profiles.router)
app.include_router(emails.router)
app.include_router(gmail.router)
app.include_router(ai.router)
app.include_router(ai_usage.router)


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Server is running"}
