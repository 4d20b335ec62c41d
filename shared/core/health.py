"""
Health checks for services fronting an upstream REST API:
- RFC Draft: Health Check Response Format for HTTP APIs
- Kubernetes liveness/readiness/startup endpoints
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from typing import Dict, Any, Optional
import os
import time
import httpx
from datetime import datetime
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)

UPSTREAM_CHECK_TIMEOUT_SEC = 3.0

class HealthStatus(str, Enum):
    """Health status values following industry standards"""
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"

class ServiceHealth:
    """
    Service health management: liveness, readiness against the upstream API,
    startup configuration checks and process metrics.
    """

    def __init__(self, service_name: str, version: str = "1.0.0", upstream_url: Optional[str] = None):
        self.service_name = service_name
        self.version = version
        self.upstream_url = upstream_url
        self.start_time = time.time()
        self.checks_performed = 0
        self.last_check_time = None

    def create_health_router(self) -> APIRouter:
        """Create health check router with industry-standard endpoints"""
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        async def health_check() -> Dict[str, Any]:
            """
            Basic liveness check - lightweight
            Used by Kubernetes liveness checks and load balancers
            """
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        async def liveness() -> Dict[str, Any]:
            """Kubernetes liveness endpoint"""
            return {"status": "alive"}

        @router.get("/health/ready")
        async def readiness(request: Request) -> JSONResponse:
            """
            Readiness - upstream API, disk and memory
            A WARN still counts as ready; only FAIL takes the service out of rotation
            """
            checks = await self._perform_readiness_checks(getattr(request.app.state, "http_client", None))

            overall_status = self._calculate_overall_status(checks)
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE if overall_status == HealthStatus.FAIL else status.HTTP_200_OK

            response = {
                "status": overall_status,
                "version": self.version,
                "releaseId": os.getenv("RELEASE_ID", "unknown"),
                "notes": [],
                "output": "",
                "checks": checks,
                "links": {},
                "serviceId": self.service_name,
                "description": f"{self.service_name} service",
                "timestamp": _now()
            }

            return JSONResponse(status_code=status_code, content=response)

        @router.get("/health/startup")
        async def startup() -> Dict[str, Any]:
            """Kubernetes startup endpoint"""
            checks = {"config:environment": self._check_environment()}
            status_val = self._calculate_overall_status(checks)

            if status_val == HealthStatus.FAIL:
                return JSONResponse(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    content={"status": "starting", "checks": checks}
                )

            return {"status": "started", "checks": checks}

        @router.get("/metrics")
        async def metrics() -> Dict[str, Any]:
            """Process metrics"""
            process = psutil.Process()
            memory = process.memory_info()

            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "cpu_percent": process.cpu_percent(),
                    "num_threads": process.num_threads()
                }
            }

        return router

    async def _perform_readiness_checks(self, client: Optional[httpx.AsyncClient] = None) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        self.last_check_time = time.time()

        checks = {}
        if self.upstream_url:
            checks["upstream:connectivity"] = await self._check_upstream(client)
        checks["storage:disk_space"] = self._check_disk_space()
        checks["system:memory"] = self._check_memory()
        return checks

    async def _check_upstream(self, client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
        """Any HTTP answer below 500 means the upstream API is serving.

        Uses the service's shared client when one is running.
        """
        try:
            start_time = time.time()
            if client is not None:
                resp = await client.get(self.upstream_url, timeout=UPSTREAM_CHECK_TIMEOUT_SEC)
            else:
                async with httpx.AsyncClient(timeout=UPSTREAM_CHECK_TIMEOUT_SEC) as upstream_client:
                    resp = await upstream_client.get(self.upstream_url)
            response_time = (time.time() - start_time) * 1000

            return {
                "status": HealthStatus.PASS if resp.status_code < 500 else HealthStatus.WARN,
                "componentType": "component",
                "observedValue": f"{response_time:.2f}ms",
                "observedUnit": "ms",
                "time": _now()
            }
        except httpx.HTTPError as e:
            logger.error(f"Upstream health check failed: {e}")
            return {
                "status": HealthStatus.FAIL,
                "componentType": "component",
                "output": str(e),
                "time": _now()
            }

    def _check_disk_space(self) -> Dict[str, Any]:
        """Check available disk space"""
        try:
            disk = psutil.disk_usage('/')
            free_gb = disk.free / (1024 ** 3)

            if free_gb < 1:
                status_val = HealthStatus.FAIL
            elif free_gb < 5:
                status_val = HealthStatus.WARN
            else:
                status_val = HealthStatus.PASS

            return {
                "status": status_val,
                "componentType": "system",
                "observedValue": f"{free_gb:.2f}",
                "observedUnit": "GB",
                "time": _now()
            }
        except OSError as e:
            return {
                "status": HealthStatus.WARN,
                "componentType": "system",
                "output": str(e),
                "time": _now()
            }

    def _check_memory(self) -> Dict[str, Any]:
        """Check available memory"""
        memory = psutil.virtual_memory()
        available_mb = memory.available / (1024 ** 2)

        if available_mb < 100:
            status_val = HealthStatus.FAIL
        elif available_mb < 500:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS

        return {
            "status": status_val,
            "componentType": "system",
            "observedValue": f"{available_mb:.2f}",
            "observedUnit": "MB",
            "time": _now()
        }

    def _check_environment(self) -> Dict[str, Any]:
        """The upstream API location must be known"""
        if not self.upstream_url:
            return {
                "status": HealthStatus.FAIL,
                "componentType": "configuration",
                "output": "Upstream API URL is not configured",
                "time": _now()
            }

        return {
            "status": HealthStatus.PASS,
            "componentType": "configuration",
            "observedValue": self.upstream_url,
            "time": _now()
        }

    def _calculate_overall_status(self, checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        """Calculate overall health status based on individual checks"""
        if not checks:
            return HealthStatus.PASS

        statuses = [check.get("status", HealthStatus.PASS) for check in checks.values()]

        if HealthStatus.FAIL in statuses:
            return HealthStatus.FAIL
        elif HealthStatus.WARN in statuses:
            return HealthStatus.WARN
        else:
            return HealthStatus.PASS
