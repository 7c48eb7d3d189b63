"""
Health check endpoints for operations monitoring.

Checks:
- Database connectivity
- Redis (Celery broker) connectivity
- Projection lag per business

Endpoints:
- /_health/live    - liveness check (is the process running?)
- /_health/ready   - readiness check (can we serve traffic?)
- /_health/full    - full health report (for debugging/dashboards)
"""
import logging
import time
from typing import Dict, Any

import redis
from django.conf import settings
from django.db import connections
from django.http import JsonResponse
from django.views import View

logger = logging.getLogger(__name__)


class HealthCheck:
    """Health check implementation."""

    @staticmethod
    def check_database(alias: str = "default") -> Dict[str, Any]:
        """Check database connectivity."""
        start = time.time()
        try:
            conn = connections[alias]
            conn.ensure_connection()
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "alias": alias,
                "duration_ms": round(duration_ms, 2),
            }
        except Exception as e:
            logger.warning("Database health check failed for %s: %s", alias, e)
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "unhealthy",
                "alias": alias,
                "error": str(e),
                "duration_ms": round(duration_ms, 2),
            }

    @staticmethod
    def check_redis() -> Dict[str, Any]:
        """Check Redis connectivity (if configured)."""
        redis_url = getattr(settings, "CELERY_BROKER_URL", None)
        if not redis_url:
            return {"status": "skipped", "reason": "Redis not configured"}

        start = time.time()
        try:
            client = redis.from_url(redis_url)
            client.ping()
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "duration_ms": round(duration_ms, 2),
            }
        except redis.RedisError as e:
            duration_ms = (time.time() - start) * 1000
            return {
                "status": "unhealthy",
                "error": str(e),
                "duration_ms": round(duration_ms, 2),
            }

    @staticmethod
    def check_projection_lag() -> Dict[str, Any]:
        """Sum unprocessed events across projections and businesses."""
        from accounts.models import Business
        from projections.base import projection_registry

        total_lag = 0
        consumers = []

        for business in Business.objects.filter(is_active=True):
            for projection in projection_registry.all():
                lag = projection.get_lag(business)
                bookmark = projection.get_bookmark(business)
                errors = bookmark.error_count if bookmark else 0
                total_lag += lag
                if lag > 0 or errors > 0:
                    consumers.append({
                        "consumer": projection.name,
                        "business": business.slug,
                        "lag": lag,
                        "errors": errors,
                    })

        lag_threshold = getattr(settings, "PROJECTION_LAG_THRESHOLD", 1000)
        status = "healthy" if total_lag < lag_threshold else "degraded"

        return {
            "status": status,
            "total_lag": total_lag,
            "threshold": lag_threshold,
            "consumers_with_lag": consumers[:10],
        }

    @staticmethod
    def get_full_health() -> Dict[str, Any]:
        """Get comprehensive health report."""
        checks = {
            "database": HealthCheck.check_database(),
            "redis": HealthCheck.check_redis(),
            "projection_lag": HealthCheck.check_projection_lag(),
        }

        statuses = [c.get("status", "unknown") for c in checks.values()]
        if all(s == "healthy" or s == "skipped" for s in statuses):
            overall = "healthy"
        elif any(s == "unhealthy" for s in statuses):
            overall = "unhealthy"
        else:
            overall = "degraded"

        return {
            "status": overall,
            "checks": checks,
            "version": getattr(settings, "VERSION", "unknown"),
            "environment": "production" if not settings.DEBUG else "development",
        }


class LivenessView(View):
    """Returns 200 if the process is running."""

    def get(self, request):
        return JsonResponse({"status": "alive"})


class ReadinessView(View):
    """
    Returns 200 if the service can handle traffic.
    Checks database connectivity.
    """

    def get(self, request):
        db_check = HealthCheck.check_database("default")

        if db_check["status"] == "healthy":
            return JsonResponse({
                "status": "ready",
                "database": db_check,
            })
        return JsonResponse({
            "status": "not_ready",
            "database": db_check,
        }, status=503)


class FullHealthView(View):
    """Full health check. Should be internal-network only in production."""

    def get(self, request):
        health = HealthCheck.get_full_health()

        status_code = 200 if health["status"] == "healthy" else 503
        return JsonResponse(health, status=status_code)
