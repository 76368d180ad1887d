"""
API response structures and status information
"""
from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, Field


class RegistryStats(BaseModel):
    """Room registry snapshot"""
    active_rooms: int = Field(..., description="Number of live rooms")
    total_viewers: int = Field(..., description="Viewer registrations across all rooms")
    rooms_created: int = Field(..., description="Rooms created since startup")
    rooms_deleted: int = Field(..., description="Rooms removed since startup")
    key_collisions: int = Field(..., description="Key draws that hit a live room")


class ConnectionStats(BaseModel):
    """Connection manager snapshot"""
    active_connections: int = Field(..., description="Currently open connections")
    peak_connections: int = Field(..., description="Highest concurrent connections")
    total_connections: int = Field(..., description="Connections accepted since startup")
    total_messages_sent: int = Field(..., description="Frames written to peers")
    total_messages_received: int = Field(..., description="Frames read from peers")
    failed_sends: int = Field(..., description="Sends that failed or timed out")


class ServiceHealthResponse(BaseModel):
    """Service health response model"""
    service_status: str = Field(..., description="Overall service health (healthy, starting)")
    version: str = Field(..., description="Service version")
    uptime_seconds: float = Field(..., description="Seconds since startup")
    rooms: RegistryStats = Field(..., description="Room registry statistics")
    connections: ConnectionStats = Field(..., description="Connection statistics")
    errors: Dict[str, Any] = Field(default_factory=dict, description="Error statistics")
    last_health_check: datetime = Field(..., description="Health check timestamp")
