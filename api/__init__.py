"""REST API module for the marketplace.

This module provides HTTP endpoints under ``/api`` for:
- Authentication and session management
- Conversations and messages, with WebSocket push
- Admin message moderation
- Earnings, payout accounts and withdrawal requests
- Identity verification requests
- Notifications
- System health monitoring

Uploaded files are served from ``/uploads``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import settings_conf
from database import init_db, close as db_close
from uploads import UPLOAD_URL_PREFIX

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    logger.info("Initializing API...")
    await init_db()

    yield

    # Shutdown
    logger.info("Shutting down API...")
    await db_close()

# Create FastAPI app
app = FastAPI(
    title="Freelance Marketplace API",
    description="Messaging, payouts and verification for the freelance marketplace",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Serve stored uploads; the directory is created on first upload
app.mount(
    UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings_conf['upload_dir'], check_dir=False),
    name="uploads"
)

# Import and include all routers
from .auth import router as auth_router
from .messages import router as messages_router
from .admin import router as admin_router
from .withdrawals import router as withdrawals_router
from .verification import router as verification_router
from .notifications import router as notifications_router
from .system import router as system_router

# Include all routers
for router in (
    auth_router,
    messages_router,
    admin_router,
    withdrawals_router,
    verification_router,
    notifications_router,
    system_router,
):
    app.include_router(router, prefix="/api")
