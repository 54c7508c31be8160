"""
HOMELINK HTTP API

aiohttp application exposing the relay to the browser UI. Every response
is a JSON object with a ``success`` flag; failures carry a ``message`` and
the status code of the HomeLinkError that caused them.

Endpoints:
    GET    /api/health                 - Liveness check
    GET    /api/devices                - Devices and link state
    POST   /api/device/{id}            - Set device state {"state": 0|1}
    POST   /api/voice-command          - Forward a raw command
    GET    /api/link/status            - Link state
    POST   /api/link/reconnect         - Fresh discovery and open
    GET    /api/link/ports             - Enumerated serial ports
    GET    /api/voice/status           - Enrollment state
    POST   /api/voice/enroll           - Start enrollment
    POST   /api/voice/enroll/attempt   - Submit a training attempt
    DELETE /api/voice/enroll           - Abandon enrollment
    DELETE /api/voice/signatures       - Forget enrolled signatures
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from aiohttp import web

from homelink.exceptions import HomeLinkError, InvalidCommandError
from homelink.logging_config import get_logger
from homelink.orchestrator import Orchestrator
from services.voice_auth import VoiceSignature, extract_features

__all__ = ["create_app"]

logger = get_logger(__name__)

ORCHESTRATOR_KEY = web.AppKey("orchestrator", Orchestrator)


def _orchestrator(request: web.Request) -> Orchestrator:
    return request.app[ORCHESTRATOR_KEY]


async def _read_body(request: web.Request) -> dict[str, Any]:
    """Parse a JSON object body; an empty body counts as {}."""
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except json.JSONDecodeError as e:
        raise InvalidCommandError(f"Request body is not valid JSON: {e.msg}") from e
    except UnicodeDecodeError as e:
        raise InvalidCommandError("Request body is not valid UTF-8") from e
    if not isinstance(body, dict):
        raise InvalidCommandError("Request body must be a JSON object")
    return body


def _voice_signature(body: dict[str, Any]) -> Optional[VoiceSignature]:
    """Build the speaker's signature from a voice-command body, if supplied."""
    try:
        if isinstance(body.get("signature"), dict):
            return VoiceSignature.from_dict(body["signature"])
        if body.get("confidence") is not None:
            transcript = body.get("transcript") or body.get("command") or ""
            return extract_features(str(transcript), float(body["confidence"]))
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidCommandError(f"Invalid voice signature: {e}", parameter="signature") from e
    return None


# =============================================================================
# Middleware
# =============================================================================


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Render HomeLinkError as the JSON error envelope."""
    try:
        return await handler(request)
    except HomeLinkError as e:
        if e.status_code >= 500:
            logger.error(f"{request.method} {request.path} failed: {e}")
        else:
            logger.debug(f"{request.method} {request.path} rejected: {e}")
        return web.json_response(
            {"success": False, "message": e.message, "details": e.details},
            status=e.status_code,
        )


def cors_middleware(origin: str):
    """Allow the browser UI, served from another port, to call the API."""
    headers = {
        "Access-Control-Allow-Origin": origin,
        "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
    }

    @web.middleware
    async def middleware(request: web.Request, handler) -> web.StreamResponse:
        if request.method == "OPTIONS":
            return web.Response(status=204, headers=headers)
        response = await handler(request)
        response.headers.update(headers)
        return response

    return middleware


# =============================================================================
# Handlers
# =============================================================================


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({
        "success": True,
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


async def handle_devices(request: web.Request) -> web.Response:
    return web.json_response({"success": True, **_orchestrator(request).list_devices()})


async def handle_set_device(request: web.Request) -> web.Response:
    device_id = request.match_info["device_id"]
    body = await _read_body(request)

    result = await _orchestrator(request).set_device_state(device_id, body.get("state"))
    device = result.device
    return web.json_response({
        "success": True,
        "message": f"{device.name} turned {device.state.name}",
        **result.to_dict(),
    })


async def handle_voice_command(request: web.Request) -> web.Response:
    body = await _read_body(request)
    signature = _voice_signature(body)

    result = await _orchestrator(request).send_command(body.get("command"), signature)
    message = (
        "Voice command sent to controller"
        if result.forwarded
        else "Voice command accepted, controller not reached"
    )
    return web.json_response({"success": True, "message": message, **result.to_dict()})


async def handle_link_status(request: web.Request) -> web.Response:
    status = _orchestrator(request).link_status()
    return web.json_response({"success": True, **status.to_dict()})


async def handle_link_reconnect(request: web.Request) -> web.Response:
    body = await _read_body(request)
    status = await _orchestrator(request).connect_link(body.get("path"))
    return web.json_response({"success": True, **status.to_dict()})


async def handle_link_ports(request: web.Request) -> web.Response:
    endpoints = await _orchestrator(request).list_ports()
    return web.json_response({"success": True, "ports": [e.to_dict() for e in endpoints]})


async def handle_voice_status(request: web.Request) -> web.Response:
    return web.json_response({"success": True, **_orchestrator(request).voice_status()})


async def handle_enroll_start(request: web.Request) -> web.Response:
    session = _orchestrator(request).start_enrollment()
    return web.json_response({
        "success": True,
        "message": f'Say: "{session.current_phrase}"',
        "enrollment": session.to_dict(),
    })


async def handle_enroll_attempt(request: web.Request) -> web.Response:
    body = await _read_body(request)
    transcript = body.get("transcript")
    if transcript is not None and not isinstance(transcript, str):
        raise InvalidCommandError("transcript must be a string", parameter="transcript")
    try:
        confidence = float(body.get("confidence", 0.0))
        attempt = _orchestrator(request).submit_enrollment_attempt(transcript or "", confidence)
    except (TypeError, ValueError) as e:
        raise InvalidCommandError(f"Invalid training attempt: {e}", parameter="confidence") from e

    return web.json_response({
        "success": True,
        **attempt.to_dict(),
        "trained": _orchestrator(request).matcher.is_trained,
    })


async def handle_enroll_abandon(request: web.Request) -> web.Response:
    abandoned = _orchestrator(request).abandon_enrollment()
    return web.json_response({"success": True, "abandoned": abandoned})


async def handle_forget_signatures(request: web.Request) -> web.Response:
    _orchestrator(request).forget_voice()
    return web.json_response({"success": True, "message": "Voice signatures cleared"})


# =============================================================================
# Application
# =============================================================================


def create_app(orchestrator: Orchestrator) -> web.Application:
    """Create and configure the web application."""
    app = web.Application(middlewares=[
        cors_middleware(orchestrator.config.server.cors_origin),
        error_middleware,
    ])
    app[ORCHESTRATOR_KEY] = orchestrator

    app.router.add_get("/api/health", handle_health)
    app.router.add_get("/api/devices", handle_devices)
    app.router.add_post("/api/device/{device_id}", handle_set_device)
    app.router.add_post("/api/voice-command", handle_voice_command)
    app.router.add_get("/api/link/status", handle_link_status)
    app.router.add_post("/api/link/reconnect", handle_link_reconnect)
    app.router.add_get("/api/link/ports", handle_link_ports)
    app.router.add_get("/api/voice/status", handle_voice_status)
    app.router.add_post("/api/voice/enroll", handle_enroll_start)
    app.router.add_post("/api/voice/enroll/attempt", handle_enroll_attempt)
    app.router.add_delete("/api/voice/enroll", handle_enroll_abandon)
    app.router.add_delete("/api/voice/signatures", handle_forget_signatures)

    return app
