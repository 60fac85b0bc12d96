from fastapi import APIRouter, Depends
import redis
from sqlalchemy import text
from sqlmodel import Session
from app.config import REDIS_URL
from app.dependencies import get_session

router = APIRouter()

@router.get("/health")
def health():
    return {"ok": True}

@router.get("/health/dependencies")
def health_dependencies(session: Session = Depends(get_session)):
    out = {}
    try:
        session.execute(text("SELECT 1"))
        out["database"] = {"ok": True}
    except Exception as e:
        out["database"] = {"ok": False, "error": str(e)}

    try:
        client = redis.from_url(REDIS_URL, socket_connect_timeout=2, socket_timeout=2)
        out["broker"] = {"ok": bool(client.ping())}
    except Exception as e:
        out["broker"] = {"ok": False, "error": str(e)}
    return out
