"""HTTP API for SLUICE.

Endpoints:
- POST /faucet/check: eligibility check, no side effects
- POST /faucet/add: record a completed disbursement
- POST /faucet/claim: check, transfer and record in one step
- GET /faucet/usage/{address}: today's usage and remaining quota
- GET /faucet/records: most recent disbursement records
- GET /health: liveness probe
- GET /ready: readiness probe (store, chain)
- GET /metrics: Prometheus metrics
"""

import json
import logging
import time
import uuid

from aiohttp import web
from prometheus_client import REGISTRY, generate_latest

from sluice.faucet import (
    DisbursementGate,
    IneligibleIdentity,
    InvalidArgument,
    QuotaDimension,
    QuotaExceeded,
    StorageUnavailable,
    UpstreamTransferFailed,
)
from sluice.observability.health import HealthCheck, HealthStatus, run_checks
from sluice.observability.logging import clear_request_id, set_request_id
from sluice.observability.metrics import REQUEST_DURATION

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Request field names, followed by the names the airdrop frontend sends
FIELD_ALIASES = {
    "identity_address": ("identity_address", "pass_port_address"),
    "destination_address": ("destination_address", "receive_address"),
    "amount": ("amount", "receive_amount"),
    "timestamp": ("timestamp", "receive_time"),
    "score": ("score",),
}

STORAGE_UNAVAILABLE_MESSAGE = "storage unavailable, please retry later"


def _field(body: dict, name: str):
    for alias in FIELD_ALIASES[name]:
        if alias in body:
            return body[alias]
    return None


async def _read_body(request: web.Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidArgument("body", "request body must be a JSON object") from None
    if not isinstance(body, dict):
        raise InvalidArgument("body", "request body must be a JSON object")
    return body


@web.middleware
async def request_context(request: web.Request, handler) -> web.StreamResponse:
    """Attach a request ID, time the request, and turn crashes into 500s."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    set_request_id(request_id)
    resource = request.match_info.route.resource
    endpoint = resource.canonical if resource is not None else "unmatched"
    started = time.monotonic()

    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers[REQUEST_ID_HEADER] = request_id
        raise
    except Exception:
        logger.exception("Unhandled error", extra={"path": request.path})
        response = web.json_response({"success": False, "message": "internal error"}, status=500)
    finally:
        duration = time.monotonic() - started
        REQUEST_DURATION.labels(endpoint=endpoint).observe(duration)
        clear_request_id()

    response.headers[REQUEST_ID_HEADER] = request_id
    logger.debug(
        "Request handled",
        extra={
            "method": request.method,
            "path": request.path,
            "status": response.status,
            "duration_ms": round(duration * 1000, 2),
            "request_id": request_id,
        },
    )
    return response


class ApiServer:
    """HTTP server for the faucet gate and its probes.

    Parameters
    ----------
    gate : DisbursementGate
        The gate requests are delegated to.
    host : str
        Host to bind to.
    port : int
        Port to bind to.
    """

    # Default to 0.0.0.0 so probes and the frontend can reach the container
    def __init__(
        self,
        gate: DisbursementGate,
        host: str = "0.0.0.0",  # noqa: S104
        port: int = 8080,
    ):
        self._gate = gate
        self._host = host
        self._port = port
        self._checks: list[HealthCheck] = []
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def add_check(self, check: HealthCheck) -> None:
        """Add a readiness check."""
        self._checks.append(check)

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes."""
        app = web.Application(middlewares=[request_context])
        app.router.add_post("/faucet/check", self._handle_check)
        app.router.add_post("/faucet/add", self._handle_add)
        app.router.add_post("/faucet/claim", self._handle_claim)
        app.router.add_get("/faucet/usage/{address}", self._handle_usage)
        app.router.add_get("/faucet/records", self._handle_records)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/ready", self._handle_ready)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self) -> None:
        """Start serving."""
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()

        logger.info("API server started", extra={"host": self._host, "port": self._port})

    async def stop(self) -> None:
        """Stop serving."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("API server stopped")

    async def _handle_check(self, request: web.Request) -> web.Response:
        """Handle POST /faucet/check."""
        try:
            body = await _read_body(request)
            decision = await self._gate.check_eligibility(
                _field(body, "identity_address"),
                _field(body, "destination_address"),
                _field(body, "amount"),
            )
        except InvalidArgument as e:
            return web.json_response({"success": False, "message": e.message}, status=400)
        except StorageUnavailable as e:
            logger.error("Eligibility check failed", extra={"error": str(e)})
            return web.json_response(
                {"success": False, "message": STORAGE_UNAVAILABLE_MESSAGE}, status=503
            )

        return web.json_response(
            {
                "success": decision.admitted,
                "message": decision.message,
                "data": decision.to_dict(),
            },
            status=200 if decision.admitted else 400,
        )

    async def _handle_add(self, request: web.Request) -> web.Response:
        """Handle POST /faucet/add."""
        try:
            body = await _read_body(request)
            record = await self._gate.record_disbursement(
                _field(body, "identity_address"),
                _field(body, "destination_address"),
                _field(body, "amount"),
                timestamp=_field(body, "timestamp"),
            )
        except InvalidArgument as e:
            return web.json_response({"successful": False, "error": e.message}, status=400)
        except QuotaExceeded as e:
            return web.json_response(
                {"successful": False, "error": e.decision.message}, status=400
            )
        except StorageUnavailable as e:
            logger.error("Recording disbursement failed", extra={"error": str(e)})
            return web.json_response(
                {"successful": False, "error": STORAGE_UNAVAILABLE_MESSAGE}, status=503
            )

        return web.json_response({"successful": True, "added": record.to_dict()})

    async def _handle_claim(self, request: web.Request) -> web.Response:
        """Handle POST /faucet/claim."""
        if not self._gate.claims_enabled:
            return web.json_response(
                {"success": False, "message": "claims are not enabled on this server"},
                status=503,
            )

        try:
            body = await _read_body(request)
            result = await self._gate.claim(
                _field(body, "identity_address"),
                _field(body, "destination_address"),
                amount=_field(body, "amount"),
                score=_field(body, "score"),
            )
        except (InvalidArgument, IneligibleIdentity) as e:
            return web.json_response({"success": False, "message": e.message}, status=400)
        except QuotaExceeded as e:
            return web.json_response(
                {
                    "success": False,
                    "message": e.decision.message,
                    "data": e.decision.to_dict(),
                },
                status=400,
            )
        except UpstreamTransferFailed as e:
            return web.json_response(
                {"success": False, "message": str(e), "tx_hash": e.tx_hash}, status=502
            )
        except StorageUnavailable as e:
            logger.error("Claim failed on storage", extra={"error": str(e)})
            return web.json_response(
                {"success": False, "message": STORAGE_UNAVAILABLE_MESSAGE}, status=503
            )

        return web.json_response({"success": True, **result.to_dict()})

    async def _handle_usage(self, request: web.Request) -> web.Response:
        """Handle GET /faucet/usage/{address}."""
        try:
            usage = await self._gate.usage(request.match_info["address"])
        except InvalidArgument as e:
            return web.json_response({"success": False, "message": e.message}, status=400)
        except StorageUnavailable as e:
            logger.error("Usage lookup failed", extra={"error": str(e)})
            return web.json_response(
                {"success": False, "message": STORAGE_UNAVAILABLE_MESSAGE}, status=503
            )
        return web.json_response({"success": True, "data": usage})

    async def _handle_records(self, request: web.Request) -> web.Response:
        """Handle GET /faucet/records."""
        query = request.query
        try:
            dimension = QuotaDimension(query["dimension"]) if query.get("dimension") else None
        except ValueError:
            return web.json_response(
                {"success": False, "message": "dimension must be identity or destination"},
                status=400,
            )
        try:
            limit = int(query.get("limit", "50"))
        except ValueError:
            return web.json_response(
                {"success": False, "message": "limit must be an integer"}, status=400
            )

        try:
            records = await self._gate.list_records(
                address=query.get("address") or None, dimension=dimension, limit=limit
            )
        except InvalidArgument as e:
            return web.json_response({"success": False, "message": e.message}, status=400)
        except StorageUnavailable as e:
            logger.error("Listing records failed", extra={"error": str(e)})
            return web.json_response(
                {"success": False, "message": STORAGE_UNAVAILABLE_MESSAGE}, status=503
            )
        return web.json_response({"success": True, "data": [r.to_dict() for r in records]})

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint (liveness probe)."""
        return web.json_response({"status": "ok"})

    async def _handle_ready(self, _request: web.Request) -> web.Response:
        """Handle /ready endpoint (readiness probe)."""
        result = await run_checks(self._checks)
        status_code = 200 if result.status == HealthStatus.OK else 503
        return web.json_response(result.to_dict(), status=status_code)

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus)."""
        return web.Response(
            body=generate_latest(REGISTRY),
            content_type="text/plain",
            charset="utf-8",
        )
