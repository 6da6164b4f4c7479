"""
Crow Backend API
FastAPI application for escrow ticket-transfer verification.
"""

import logging
import os
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app.db import supabase_admin
from app.routers import admin_transfers, email_webhook
from app.services.transfer_email_parser import build_default_parser

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Crow API",
    description="Escrow ticket-transfer verification for the Crow marketplace",
    version="0.1.0",
)

# Platform -> parser table, built once and shared by every request
app.state.transfer_parser = build_default_parser()


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes http://localhost:3000 (Next.js dev server). Additional
    origins are read from the CORS_ORIGINS environment variable as a
    comma-separated list, e.g.:
        CORS_ORIGINS=https://crowtickets.com,https://admin.crowtickets.com

    Duplicates are removed while preserving order.
    """
    always_included = ["http://localhost:3000"]

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(email_webhook.router, prefix="/api/email", tags=["email"])
app.include_router(admin_transfers.router, prefix="/api/admin/transfers", tags=["admin"])


@app.on_event("startup")
async def log_startup() -> None:
    logger.info(
        "Crow API started; transfer parsers: %s",
        ", ".join(app.state.transfer_parser.platforms),
    )


@app.get("/")
async def root():
    return {"message": "Crow API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Executes a lightweight query (one row from listings) through the admin
    client. Returns 503 on failure.
    """
    if supabase_admin is None:
        raise HTTPException(
            status_code=503,
            detail="Database client unavailable: SUPABASE_SERVICE_KEY is not configured",
        )

    try:
        supabase_admin.table("listings").select("id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )
