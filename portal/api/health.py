"""
Health check API endpoint.

Aggregates health status from the Vestry gates. Served outside /api so it
needs no admin token.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

from fastapi import APIRouter, Response

from vestry.shared.gate import GateLogger

_log = GateLogger.get("Health")


def collect_health_data(gates: Dict[str, Any]) -> Tuple[bool, Dict[str, Any]]:
    """
    Collect health data from every gate.

    Args:
        gates: Gate name -> object exposing get_health_status()

    Returns:
        Tuple of (all_healthy, per-gate status dict)
    """
    statuses: Dict[str, Any] = {}
    all_healthy = True

    for name, gate in gates.items():
        try:
            statuses[name] = gate.get_health_status()
        except Exception as e:
            _log.error(f"Health check for {name} failed: {e}")
            statuses[name] = {"healthy": False, "error": str(e)}

        if not statuses[name].get("healthy", False):
            all_healthy = False

    return all_healthy, statuses


def create_router(gates: Dict[str, Any]) -> APIRouter:
    router = APIRouter()

    @router.get("/health")
    async def health(response: Response) -> Dict[str, Any]:
        """
        Aggregated gate health.

        Returns 200 when healthy, 503 when unhealthy.
        """
        all_healthy, statuses = collect_health_data(gates)

        if not all_healthy:
            response.status_code = 503

        return {
            "healthy": all_healthy,
            "gates": statuses,
        }

    return router


__all__ = ["create_router", "collect_health_data"]
