"""
MindSpend - FastAPI Application

Main entry point for the MindSpend backend.

Architecture:
- Ledger (expenses, categories, budgets) → LedgerReader
- LedgerReader → Nudge rules → NudgeCandidate
- NudgeGate (disabled / muted / cooldown) → NudgeDeliveryService
- NudgeDeliveryService → delivery log + best-effort Web Push
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import auth_router, ledger_router, nudges_router, notifications_router
from .database import init_db
from .services.notifications import get_dispatcher


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup; stop push workers on shutdown."""
    init_db()
    yield
    get_dispatcher().shutdown()

# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="MindSpend",
    description="""
    MindSpend - Personal Finance Tracker

    Log expenses, set monthly budgets, and receive explainable behavioral
    nudges about spending patterns.

    ## Nudges
    - **spending_spike**: today well above the recent daily average
    - **budget_over**: a category passed its monthly budget
    - **late_night**: expense logged after 22:00
    - **weekend_spend**: weekend spending above the weekday average
    - **repeat_category**: three or more expenses in one category within 24h

    ## Key Principles
    - Deterministic threshold rules, no ML
    - Each nudge type has a cooldown; users can mute or disable any type
    - Push notifications are best-effort and never block a request
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(ledger_router)
app.include_router(nudges_router)
app.include_router(notifications_router)


@app.get("/")
async def root():
    """Root endpoint - API information."""
    return {
        "name": "MindSpend",
        "version": "1.0.0",
        "description": "Personal finance tracker with rule-based nudges",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": "1.0.0"}


# For running with: python -m mindspend.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
