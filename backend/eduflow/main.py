"""FastAPI application entry point."""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eduflow.core import config
from eduflow.persistence.db import init_db
from eduflow.api import content
from eduflow.api.errors import install_error_handlers

# ------------------------------------------------------------------
# App creation
# ------------------------------------------------------------------
app = FastAPI(
    title="Eduflow Content API",
    description="Content lifecycle, review workflow and visibility for educational topics",
    version="1.0.0",
)

# CORS: allow everything for local dev (restrict for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


# ------------------------------------------------------------------
# Startup: initialise DB schema
# ------------------------------------------------------------------
@app.on_event("startup")
def on_startup():
    if config.STORE == "sqlite":
        init_db()


# ------------------------------------------------------------------
# Routers
# ------------------------------------------------------------------
app.include_router(content.router)
