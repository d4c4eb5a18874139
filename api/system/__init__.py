"""System health endpoint."""

from fastapi import APIRouter
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel
import logging
import psutil

from database import get_pool
from api.websockets import manager as connections

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(
    tags=["System"]
)

STARTED_AT = datetime.now(timezone.utc)

class SystemHealth(BaseModel):
    """Model for system health data."""
    status: str
    uptime: float
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    database_status: str
    database_connections: Optional[int] = None
    websocket_connections: int

async def check_database() -> Optional[int]:
    """Return the number of active database sessions, or None if unreachable."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval(
                '''
                SELECT COUNT(*)
                FROM pg_stat_activity
                WHERE state = 'active'
                '''
            )
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return None

@router.get("/health", response_model=SystemHealth)
async def get_system_health() -> SystemHealth:
    """Get system health status.

    Reports ``unhealthy`` when the database is unreachable and ``degraded``
    under heavy CPU load.
    """
    cpu_percent = psutil.cpu_percent()
    memory = psutil.virtual_memory()
    disk = psutil.disk_usage('/')

    database_connections = await check_database()
    if database_connections is None:
        health = "unhealthy"
    elif cpu_percent >= 80:
        health = "degraded"
    else:
        health = "healthy"

    return SystemHealth(
        status=health,
        uptime=(datetime.now(timezone.utc) - STARTED_AT).total_seconds(),
        cpu_usage=cpu_percent,
        memory_usage=memory.percent,
        disk_usage=disk.percent,
        database_status="connected" if database_connections is not None else "unavailable",
        database_connections=database_connections,
        websocket_connections=connections.connection_count()
    )

# Export the router
__all__ = ['router']
