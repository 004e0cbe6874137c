from fastapi import APIRouter, Depends
from sqlmodel import Session, select
from streamservice.core.config import settings
from streamservice.core.db import get_session
from streamservice.models import Video, utc_now
from streamservice.services.job_store import JobStore
from streamservice.services.log_publisher import get_redis_client
from streamservice.services.storage import storage_manager

router = APIRouter()

@router.get("/")
def health_check():
    """basic liveness check"""
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": "streamservice-backend"
    }

@router.get("/ready")
def readiness_check(session: Session = Depends(get_session)):
    """readiness check - verifies the database and, when configured, redis"""
    checks = {}
    all_healthy = True

    # check database
    try:
        session.exec(select(Video).limit(1))
        checks["database"] = {"status": "healthy", "message": "connected"}
    except Exception as e:
        checks["database"] = {"status": "unhealthy", "message": str(e)}
        all_healthy = False

    # check redis (only used for live log streaming, so never fatal)
    if settings.REDIS_URL:
        try:
            get_redis_client().ping()
            checks["redis"] = {"status": "healthy", "message": "connected"}
        except Exception as e:
            checks["redis"] = {"status": "warning", "message": str(e)}
    else:
        checks["redis"] = {"status": "warning", "message": "not configured"}

    return {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": utc_now().isoformat(),
        "checks": checks
    }

@router.get("/metrics")
def get_metrics(session: Session = Depends(get_session)):
    """queue and storage metrics"""
    counts = JobStore(session.get_bind()).status_counts()
    usage = storage_manager.get_disk_usage()

    return {
        "timestamp": utc_now().isoformat(),
        "videos": {
            "total": sum(counts.values()),
            "by_status": counts,
        },
        "storage": {
            "videos_gb": round(usage["videos_gb"], 3),
            "job_dirs": usage["job_dirs"],
        }
    }
