"""
Health, readiness and metrics endpoints.

Runs as a small FastAPI app next to the MCP stdio server so orchestrators
can probe liveness and readiness over HTTP.
"""

import hmac
import os
import platform
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jira_gateway import __version__
from jira_gateway.config.settings import Settings, get_settings
from jira_gateway.error_handling.exceptions import GatewayError
from jira_gateway.jira.client import JiraClient
from jira_gateway.monitoring.logger import get_logger, log_security_event

logger = get_logger(__name__)

DEGRADED_ERROR_RATE = 20.0
UNHEALTHY_ERROR_RATE = 50.0
DEGRADED_MEMORY_PERCENT = 75.0
UNHEALTHY_MEMORY_PERCENT = 90.0

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "X-XSS-Protection": "1; mode=block",
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def peak_rss_bytes() -> Optional[int]:
    """Peak resident set size of this process, or None where getrusage is missing."""
    if sys.platform == "win32":
        return None
    import resource

    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes
    return peak if sys.platform == "darwin" else peak * 1024


class HealthService:
    """Probe endpoints for the gateway process."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        jira_client: Optional[JiraClient] = None,
        clock: Optional[Callable[[], float]] = None,
        memory_usage: Optional[Callable[[], Optional[int]]] = None,
    ):
        self.settings = settings or get_settings()
        self.jira_client = jira_client
        self.require_token = self.settings.health_require_token
        self.token = self.settings.health_token
        self._clock = clock or time.monotonic
        self._memory_usage = memory_usage or peak_rss_bytes
        self.memory_limit_bytes = self.settings.health_memory_limit_mb * 1024 * 1024
        self.start_time = self._clock()
        self.started_at = _utc_now()
        self.request_count = 0
        self.error_count = 0
        self._server: Optional[uvicorn.Server] = None
        self.app = self.create_app()

    def set_jira_client(self, client: JiraClient) -> None:
        self.jira_client = client

    @property
    def uptime_seconds(self) -> int:
        return int(self._clock() - self.start_time)

    @property
    def memory_percent(self) -> Optional[float]:
        """Peak resident memory as a percentage of the configured limit."""
        used = self._memory_usage()
        if used is None:
            return None
        return used / self.memory_limit_bytes * 100

    @property
    def error_rate(self) -> float:
        """Percentage of responses with status >= 400."""
        if self.request_count == 0:
            return 0.0
        return self.error_count / self.request_count * 100

    def create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            logger.info(
                "Health service starting",
                extra={"protected": self.require_token},
            )
            yield
            logger.info("Health service shutting down")

        app = FastAPI(
            title="Jira Gateway Health",
            version=__version__,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            lifespan=lifespan,
        )

        @app.middleware("http")
        async def count_and_harden(request: Request, call_next):
            self.request_count += 1
            response = await call_next(request)
            if response.status_code >= 400:
                self.error_count += 1
            for header, value in SECURITY_HEADERS.items():
                response.headers[header] = value
            return response

        self._register_routes(app)
        return app

    def _register_routes(self, app: FastAPI) -> None:
        """Register probe routes."""

        @app.get("/health")
        async def health():
            """Liveness probe."""
            body = self.health_status()
            status_code = 503 if body["status"] == "unhealthy" else 200
            return JSONResponse(body, status_code=status_code)

        @app.get("/ready")
        async def ready():
            """Readiness probe."""
            body = await self.readiness_status()
            status_code = 200 if body["status"] == "ready" else 503
            return JSONResponse(body, status_code=status_code)

        @app.get("/metrics")
        async def metrics(request: Request):
            if not self._authorized(request):
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            return self.metrics()

        @app.get("/info")
        async def info(request: Request):
            if not self._authorized(request):
                return JSONResponse({"error": "Unauthorized"}, status_code=401)
            return self.info()

    def _authorized(self, request: Request) -> bool:
        if not self.require_token:
            return True

        supplied = request.headers.get("x-health-token")
        if supplied and self.token and hmac.compare_digest(supplied, self.token):
            return True

        log_security_event(
            "health_endpoint_unauthorized",
            severity="medium",
            details={"path": request.url.path},
        )
        return False

    def health_status(self) -> Dict[str, Any]:
        """Compute the liveness report."""
        checks: Dict[str, Dict[str, str]] = {}
        overall = "healthy"

        memory_percent = self.memory_percent
        if memory_percent is None:
            checks["memory"] = {
                "status": "pass",
                "message": "Memory usage not available on this platform",
            }
        elif memory_percent > UNHEALTHY_MEMORY_PERCENT:
            checks["memory"] = {
                "status": "fail",
                "message": f"Memory usage critical: {memory_percent:.1f}%",
            }
            overall = "unhealthy"
        elif memory_percent > DEGRADED_MEMORY_PERCENT:
            checks["memory"] = {
                "status": "warn",
                "message": f"Memory usage high: {memory_percent:.1f}%",
            }
            overall = "degraded"
        else:
            checks["memory"] = {
                "status": "pass",
                "message": f"Memory usage normal: {memory_percent:.1f}%",
            }

        uptime = self.uptime_seconds
        checks["uptime"] = {
            "status": "pass",
            "message": f"Service running for {uptime} seconds",
        }

        error_rate = self.error_rate
        if error_rate > UNHEALTHY_ERROR_RATE:
            checks["error_rate"] = {
                "status": "fail",
                "message": f"Error rate critical: {error_rate:.1f}%",
            }
            overall = "unhealthy"
        elif error_rate > DEGRADED_ERROR_RATE:
            checks["error_rate"] = {
                "status": "warn",
                "message": f"Error rate elevated: {error_rate:.1f}%",
            }
            if overall == "healthy":
                overall = "degraded"
        else:
            checks["error_rate"] = {
                "status": "pass",
                "message": f"Error rate normal: {error_rate:.1f}%",
            }

        return {
            "status": overall,
            "timestamp": _utc_now(),
            "version": __version__,
            "uptime": uptime,
            "checks": checks,
        }

    async def readiness_status(self) -> Dict[str, Any]:
        """Compute the readiness report, contacting Jira once."""
        checks: Dict[str, Dict[str, str]] = {}
        is_ready = True

        if self.jira_client is None:
            checks["jira_client"] = {
                "status": "fail",
                "message": "Jira client not configured",
            }
            is_ready = False
        else:
            try:
                await self.jira_client.get_current_user()
                checks["jira_connectivity"] = {
                    "status": "pass",
                    "message": "Jira API accessible",
                }
            except GatewayError as exc:
                logger.warning(f"Readiness check failed: {exc.message}")
                checks["jira_connectivity"] = {
                    "status": "fail",
                    "message": "Cannot connect to Jira API",
                }
                is_ready = False

        missing = self.settings.missing_credentials()
        if missing:
            checks["environment"] = {
                "status": "fail",
                "message": f"Missing required environment variables: {', '.join(missing)}",
            }
            is_ready = False
        else:
            checks["environment"] = {
                "status": "pass",
                "message": "All required environment variables present",
            }

        return {
            "status": "ready" if is_ready else "not_ready",
            "timestamp": _utc_now(),
            "checks": checks,
        }

    def metrics(self) -> Dict[str, Any]:
        uptime = self.uptime_seconds
        data: Dict[str, Any] = {
            "timestamp": _utc_now(),
            "uptime": uptime,
            "requests": {
                "total": self.request_count,
                "errors": self.error_count,
                "rate": self.request_count / uptime if uptime > 0 else 0,
            },
            "memory": {
                "peak_rss_bytes": self._memory_usage(),
                "limit_bytes": self.memory_limit_bytes,
            },
        }
        if self.jira_client is not None:
            data["rate_limiter"] = self.jira_client.rate_limiter.get_statistics()
        return data

    def info(self) -> Dict[str, Any]:
        return {
            "name": "jira-gateway",
            "version": __version__,
            "description": "MCP gateway for read-only Jira Cloud access",
            "python_version": platform.python_version(),
            "platform": sys.platform,
            "arch": platform.machine(),
            "pid": os.getpid(),
            "started": self.started_at,
            "environment": self.settings.environment,
        }

    async def serve(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Run the app with uvicorn until cancelled."""
        bind_host = host or self.settings.health_host
        bind_port = port or self.settings.health_port

        config = uvicorn.Config(
            self.app,
            host=bind_host,
            port=bind_port,
            log_config=None,
            access_log=False,
            log_level=self.settings.log_level.lower(),
        )
        self._server = uvicorn.Server(config)
        logger.info(
            "Health service started",
            extra={"host": bind_host, "port": bind_port, "protected": self.require_token},
        )
        await self._server.serve()

    def shutdown(self) -> None:
        """Ask a running server to exit after in-flight requests finish."""
        if self._server is not None:
            self._server.should_exit = True
