"""
Teleprompter - Call Script Display for Dialer Agents
Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .data_api import close_data_store, get_data_store
from .routes import script_router, submissions_router, roles_router
from .session import session_manager

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

VERSION = "1.0.0"


# ============ LIFESPAN ============

@asynccontextmanager
async def lifespan(app: FastAPI):
    print("\n" + "="*50)
    print("📜 Teleprompter Starting Up...")
    print("="*50)

    store = get_data_store()
    if store.is_configured:
        print(f"✓ Data API configured (tables prefixed '{store.table_prefix}')")
    else:
        print("⚠ DATA_API_URL not set - scripts and selections unavailable")

    print(f"✓ Daypart greeting uses {settings.reference_timezone}")
    print(f"✓ Admin sentinel {settings.admin_sentinel}, manager sentinel {settings.manager_sentinel}")

    print("\n" + "="*50)
    print("✅ Teleprompter Ready")
    print(f"   URL: http://{settings.host}:{settings.port}")
    print("="*50 + "\n")

    yield

    print("\n👋 Teleprompter Shutting Down...")
    session_manager.close_all()
    await close_data_store()


# ============ APP SETUP ============

app = FastAPI(
    title=settings.app_name,
    description="Call script teleprompter with per-agent alternatives and moderated submissions",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(script_router)
app.include_router(submissions_router)
app.include_router(roles_router)


# ============ HEALTH CHECK ============

@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers"""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": VERSION,
        "data_api": get_data_store().is_configured,
        "open_sessions": len(session_manager),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("teleprompter.main:app", host=settings.host, port=settings.port, reload=settings.debug)
