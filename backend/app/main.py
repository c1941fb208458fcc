from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from core.error_handling import register_exception_handlers
from app.startup import configure_logging, run_startup_checks

# ========== Loyalty & Rewards ==========
from modules.loyalty.routes.loyalty_routes import router as loyalty_router
from modules.loyalty.routes.rewards_routes import router as rewards_router

configure_logging()

app = FastAPI(
    title="Restaurant Loyalty API",
    description="""
    Customer loyalty backend for restaurants.

    ## Features

    * **Loyalty Configuration** - Point value, blanket earning modes and tier multipliers
    * **Points Calculation** - Per-item and blanket point awards with side-effect free previews
    * **Point Ledger** - Append-only point history with automatic tier progression
    * **Rewards** - Reward catalog with tier and stock gating
    * **Redemptions** - All-or-nothing point redemption and redemption lifecycle
    """,
    version="1.0.0",
)

# Register exception handlers for consistent error responses
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Loyalty & Rewards
app.include_router(loyalty_router)
app.include_router(rewards_router)


@app.on_event("startup")
async def startup_event():
    """Validate the database before serving requests"""
    await run_startup_checks()


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "ok", "environment": settings.environment}


@app.get("/")
def read_root():
    return {"message": "Loyalty backend is running"}
