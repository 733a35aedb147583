from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlmodel import Session

from ..services import PassportServices, get_services


router = APIRouter(tags=["status"])


@router.get("/status", response_model=dict)
def get_status():
    return {"status": "ok"}


@router.get("/status/db", response_model=dict)
def db_status(services: PassportServices = Depends(get_services)):
    ok = True
    details = {"backend": services.engine.url.get_backend_name()}
    try:
        with Session(services.engine) as session:
            session.exec(text("SELECT 1"))
        details["clients"] = services.clients.count()
    except Exception as e:  # noqa: BLE001
        ok = False
        details["error"] = str(e)
    return {"ok": ok, "details": details}
