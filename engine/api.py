"""
State REST API for the Smart Wi-Fi Agent.

This module implements the FastAPI application that exposes the published
connection snapshot and lets a local dashboard change settings, toggle the
service and release quarantined access points.
"""

from fastapi import FastAPI, HTTPException
import logging

from models import ConnectionSnapshot, ServiceUpdate, SettingsUpdate


logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Smart Wi-Fi Agent API",
    description="Local REST API for connection state and settings",
    version="1.0.0"
)

# Agent serving requests, attached by agent.main
_agent = None


def attach_agent(agent) -> None:
    """Serve state and settings for ``agent`` (None detaches)."""
    global _agent
    _agent = agent
    logger.info("Agent attached to state API" if agent is not None else "Agent detached from state API")


def _require_agent():
    if _agent is None:
        raise HTTPException(status_code=503, detail="Agent not running")
    return _agent


@app.get("/api/v1/state", response_model=ConnectionSnapshot)
async def get_state() -> ConnectionSnapshot:
    """
    Retrieve the latest connection snapshot.

    Example Response:
        {
            "service_running": true,
            "current_ssid": "HomeNet",
            "signal_strength": -55,
            "frequency_band": "5GHz",
            "internet_status": "Connected",
            "connection_source": "WIFI_ROUTER",
            "active_mode": "Stationary (Home/Office)",
            ...
        }
    """
    return _require_agent().publisher.current()


@app.patch("/api/v1/settings", response_model=ConnectionSnapshot)
async def update_settings(settings: SettingsUpdate) -> ConnectionSnapshot:
    """
    Apply a partial settings update.

    Only fields present in the body are changed. Out-of-range values are
    rejected with HTTP 422 before reaching the agent.

    Example Request:
        PATCH /api/v1/settings
        {"sensitivity": 70, "prefer_5ghz": true}
    """
    agent = _require_agent()
    logger.info(f"Settings update: {settings.model_dump(exclude_none=True)}")
    return agent.apply_settings(settings)


@app.put("/api/v1/service", response_model=ConnectionSnapshot)
async def set_service(update: ServiceUpdate) -> ConnectionSnapshot:
    """
    Enable or disable the evaluation service.

    Example Request:
        PUT /api/v1/service
        {"running": false}
    """
    agent = _require_agent()
    agent.set_service_running(update.running)
    return agent.publisher.current()


@app.delete("/api/v1/probation/{bssid}", response_model=ConnectionSnapshot)
async def release_probation(bssid: str) -> ConnectionSnapshot:
    """
    Release an access point from probation so it can be tried again.

    Raises:
        HTTPException 404: If the access point is not under probation
    """
    agent = _require_agent()
    if not agent.release_probation(bssid):
        logger.warning(f"Release requested for {bssid}, which is not under probation")
        raise HTTPException(
            status_code=404,
            detail=f"{bssid} is not under probation"
        )
    return agent.publisher.current()


@app.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns basic service status information.
    """
    agent = _require_agent()
    return {
        "status": "healthy",
        "service_running": agent.publisher.current().service_running
    }
