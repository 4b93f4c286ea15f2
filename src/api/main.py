# api/main.py

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import metrics

# Charge .env en local uniquement
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s : %(message)s",
)
logger = logging.getLogger("salesboard.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Salesboard Metrics API — Démarrage")
    yield
    logger.info("Salesboard Metrics API — Arrêt")


app = FastAPI(
    title="Salesboard Metrics API",
    version="1.0.0",
    description="Commissions, metas et métriques de revenu par whitelabel",
    lifespan=lifespan,
)

# ─────────────────────────────────────────
# CORS
# ─────────────────────────────────────────
# FRONTEND_ORIGINS="https://app.exemple.com,https://admin.exemple.com"
frontend_origins = os.getenv("FRONTEND_ORIGINS", "")
origins = ["http://localhost:3000"]

if frontend_origins:
    origins.extend([o.strip() for o in frontend_origins.split(",") if o.strip()])

origins = sorted(set(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],  # inclut X-API-KEY
)

# ─────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────
app.include_router(metrics.router, prefix="/metrics", tags=["metrics"])

# ─────────────────────────────────────────
# HEALTH
# ─────────────────────────────────────────
@app.get("/")
def root() -> dict:
    return {"status": "ok", "service": "salesboard-metrics"}

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "salesboard-metrics"}

# ─────────────────────────────────────────
# ERREURS GLOBALES
# ─────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Erreur non gérée — {request.method} {request.url}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Erreur interne", "detail": str(exc)},
    )
