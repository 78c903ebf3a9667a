"""
callsense/api/app.py
=====================
FastAPI application — CallSense

Responsibility:
    - Create the app and its CORS middleware
    - Mount the auth, reports, knowledge, team and assist routers
    - Map store lookups of missing documents to 404

Per-route code maps domain exceptions to HTTPException; see the routers.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callsense import config
from callsense.api.routes import assist, auth, knowledge, reports, team
from callsense.store.document_store import DocumentNotFound

logger = logging.getLogger("callsense.api")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CallSense",
    description="Sales-call auditing: transcripts, compliance scoring, coaching.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(reports.router)
app.include_router(knowledge.router)
app.include_router(team.router)
app.include_router(assist.router)


@app.exception_handler(DocumentNotFound)
async def document_not_found(request: Request, exc: DocumentNotFound):
    logger.warning("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": "Not found."})


@app.get("/api/health")
def health():
    return {"status": "ok"}
