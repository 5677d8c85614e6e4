# backend/routes/sysadmin.py
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List

from database import get_db
from models.system_config import SystemConfiguration
from models.users import Role, User
from schemas import system as schemas
from schemas.common import Envelope, ok
from services.config_service import config_service
from utils.audit import write_log, client_ip
from utils.tokenJWT import role_required

router = APIRouter(prefix="/sysadmin/configurations", tags=["System Configuration"])

sysadmin = role_required(Role.SYSADMIN)
config_readers = role_required(Role.SYSADMIN, Role.ADMIN, Role.ACCOUNTANT)


@router.get("", response_model=Envelope[schemas.ConfigGroups])
def list_configurations(db: Session = Depends(get_db), current_user: User = Depends(sysadmin)):
    return ok(config_service.grouped(db))


@router.get("/categories", response_model=Envelope[List[str]])
def list_categories(db: Session = Depends(get_db), current_user: User = Depends(sysadmin)):
    return ok(config_service.categories(db))


@router.get("/category/{category}", response_model=Envelope[List[schemas.ConfigResponse]])
def list_category(category: str, db: Session = Depends(get_db), current_user: User = Depends(sysadmin)):
    rows = config_service.list_all(db, category=category)
    if not rows:
        raise HTTPException(status_code=404, detail=f"Unknown configuration category '{category}'")
    return ok(rows)


# Read by billing screens, so accountants and admins may see it too
@router.get("/invoice/due-days", response_model=Envelope[schemas.DueDays])
def invoice_due_days(db: Session = Depends(get_db), current_user: User = Depends(config_readers)):
    return ok({"due_days": config_service.invoice_due_days(db)})


@router.get("/invoice/late-fee", response_model=Envelope[schemas.LateFee])
def invoice_late_fee(db: Session = Depends(get_db), current_user: User = Depends(config_readers)):
    return ok({"late_fee_percent": float(config_service.invoice_late_fee_percent(db))})


@router.get("/{key}", response_model=Envelope[schemas.ConfigResponse])
def get_configuration(key: str, db: Session = Depends(get_db), current_user: User = Depends(sysadmin)):
    row = db.query(SystemConfiguration).filter(SystemConfiguration.config_key == key).first()
    if not row:
        raise HTTPException(status_code=404, detail=f"Configuration '{key}' not found")
    return ok(row)


@router.put("/{key}", response_model=Envelope[schemas.ConfigResponse])
def update_configuration(
    key: str,
    payload: schemas.ConfigUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(sysadmin),
):
    row = config_service.set(db, key, payload.value, user_id=current_user.id)
    db.commit()
    db.refresh(row)

    # Secrets stay out of the audit trail
    shown = "***" if "password" in key else payload.value
    write_log(db, user_id=current_user.id, action="CONFIG_UPDATE", resource="configurations",
              ip=client_ip(request), meta={"key": key, "value": shown})
    return ok(row, message=f"Configuration '{key}' updated")
