"""
Health checks and monitoring with Prometheus metrics
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response
import time
import psutil
import structlog
from sqlmodel import Session, select, func

from studyguide import config
from studyguide.db import engine
from studyguide.models import ReviewerRecord

logger = structlog.get_logger()

# Prometheus metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
STORED_REVIEWERS = Gauge('stored_reviewers_total', 'Number of reviewers in the database')
GENERATION_REQUESTS = Counter('generation_requests_total', 'Total generation requests', ['type', 'mode', 'status'])
FALLBACK_CELLS = Counter('generation_fallback_cells_total', 'Cells that fell back to heuristics', ['cell'])
THIN_SOURCE = Counter('generation_thin_source_total', 'Generations flagged as thin source material', ['type'])


def record_generation(kind: str, report) -> None:
    GENERATION_REQUESTS.labels(type=kind, mode=report.mode, status="success").inc()
    for cell in report.fallback_cells:
        FALLBACK_CELLS.labels(cell=cell).inc()
    if report.thin_source_material:
        THIN_SOURCE.labels(type=kind).inc()


def record_generation_failure(kind: str) -> None:
    GENERATION_REQUESTS.labels(type=kind, mode="unknown", status="error").inc()


class HealthChecker:
    def __init__(self):
        self.start_time = time.time()

    def check_database(self) -> dict:
        """Check database connectivity and health"""
        try:
            with Session(engine) as session:
                count = session.exec(select(func.count()).select_from(ReviewerRecord)).one()
            STORED_REVIEWERS.set(count)
            return {
                "status": "healthy",
                "message": "Database connection successful",
                "reviewers_count": count
            }
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "message": f"Database connection failed: {str(e)}"
            }

    def check_llm(self) -> dict:
        """Report whether a completion endpoint is configured; generation degrades to heuristics without one"""
        if not config.llm_configured():
            return {
                "status": "degraded",
                "message": "No LLM endpoint configured, using heuristic generation"
            }
        return {
            "status": "healthy",
            "message": "LLM endpoint configured",
            "model": config.llm_model(),
            "base_url": config.llm_base_url()
        }

    def get_system_metrics(self) -> dict:
        """Get system resource metrics"""
        try:
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')

            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory_percent": memory.percent,
                "memory_available_gb": round(memory.available / (1024**3), 2),
                "disk_percent": disk.percent,
                "disk_free_gb": round(disk.free / (1024**3), 2),
                "uptime_seconds": time.time() - self.start_time
            }
        except Exception as e:
            logger.error("system_metrics_failed", error=str(e))
            return {"error": str(e)}

    def get_health_status(self) -> dict:
        """Get overall health status"""
        checks = {
            "database": self.check_database(),
            "llm": self.check_llm()
        }

        unhealthy_checks = [name for name, check in checks.items() if check["status"] == "unhealthy"]
        overall_status = "healthy" if not unhealthy_checks else "unhealthy"

        return {
            "status": overall_status,
            "version": config.VERSION,
            "timestamp": time.time(),
            "checks": checks,
            "system_metrics": self.get_system_metrics(),
            "unhealthy_components": unhealthy_checks
        }


# Global health checker instance
health_checker = HealthChecker()


def get_metrics():
    """Get Prometheus metrics"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
