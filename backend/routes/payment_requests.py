# backend/routes/payment_requests.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from datetime import date
from typing import List, Optional
import logging

from database import get_db
from models.payroll import PaymentRequest, PaymentRequestStatus
from models.timesheet import Timesheet
from models.users import Role, User
from schemas import timesheet as schemas
from schemas.common import Envelope, Page, ok, paginate
from services import notifications, payroll
from utils.audit import write_log, client_ip
from utils.errors import AppError
from utils.money import ZERO, to_money
from utils.tokenJWT import get_current_user, role_required

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payment Requests"])

accountant = role_required(Role.ACCOUNTANT, Role.ADMIN)
hr = role_required(Role.HR, Role.ADMIN)


def _base_query(db: Session):
    return db.query(PaymentRequest).options(
        joinedload(PaymentRequest.instructor),
        joinedload(PaymentRequest.timesheet),
    )


def _get_request(db: Session, request_id: int) -> PaymentRequest:
    payment_request = _base_query(db).filter(PaymentRequest.id == request_id).first()
    if not payment_request:
        raise HTTPException(status_code=404, detail="Payment request not found")
    return payment_request


# =========================
# ACCOUNTING
# =========================
@router.get("/payment-requests", response_model=Envelope[Page[schemas.PaymentRequestResponse]])
def list_payment_requests(
    request_status: Optional[PaymentRequestStatus] = Query(None, alias="status"),
    instructor_id: Optional[int] = Query(None),
    week_from: Optional[date] = Query(None),
    week_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    query = _base_query(db)
    if request_status:
        query = query.filter(PaymentRequest.status == request_status)
    if instructor_id is not None:
        query = query.filter(PaymentRequest.instructor_id == instructor_id)
    if week_from or week_to:
        query = query.join(Timesheet, Timesheet.id == PaymentRequest.timesheet_id)
        if week_from:
            query = query.filter(Timesheet.week_start_date >= week_from)
        if week_to:
            query = query.filter(Timesheet.week_start_date <= week_to)
    query = query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
    return ok(paginate(query, page, page_size))


@router.get("/payment-requests/stats", response_model=Envelope[schemas.PaymentRequestStats])
def payment_request_stats(db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    rows = (
        db.query(PaymentRequest.status, func.count(PaymentRequest.id), func.coalesce(func.sum(PaymentRequest.amount), 0))
        .group_by(PaymentRequest.status)
        .all()
    )
    counts = {s: 0 for s in PaymentRequestStatus}
    amounts = {s: ZERO for s in PaymentRequestStatus}
    for row_status, count, amount in rows:
        counts[PaymentRequestStatus(row_status)] = count
        amounts[PaymentRequestStatus(row_status)] = to_money(amount or 0)

    return ok({
        "pending": counts[PaymentRequestStatus.PENDING],
        "approved": counts[PaymentRequestStatus.APPROVED],
        "rejected": counts[PaymentRequestStatus.REJECTED],
        "returned_to_hr": counts[PaymentRequestStatus.RETURNED_TO_HR],
        "completed": counts[PaymentRequestStatus.COMPLETED],
        "pending_amount": amounts[PaymentRequestStatus.PENDING],
        "approved_amount": amounts[PaymentRequestStatus.APPROVED],
        "completed_amount": amounts[PaymentRequestStatus.COMPLETED],
    })


@router.post("/payment-requests/bulk-process", response_model=Envelope[schemas.BulkProcessResult])
def bulk_process(
    payload: schemas.BulkProcess,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    """Apply one decision to many requests; each item succeeds or fails on its own."""
    results = []
    for request_id in dict.fromkeys(payload.request_ids):
        payment_request = db.query(PaymentRequest).filter(PaymentRequest.id == request_id).first()
        if payment_request is None:
            results.append({"id": request_id, "success": False, "error": "Payment request not found"})
            continue
        try:
            payroll.process_request(db, payment_request, payload.action, payload.notes, current_user.id)
            db.commit()
        except AppError as exc:
            db.rollback()
            results.append({"id": request_id, "success": False, "status": payment_request.status,
                            "error": exc.detail})
            continue
        results.append({"id": request_id, "success": True, "status": payment_request.status})

    processed = sum(1 for r in results if r["success"])
    logger.info("Bulk %s by user %s: %s ok, %s failed", payload.action, current_user.id,
                processed, len(results) - processed)
    write_log(db, user_id=current_user.id, action="PAYMENT_REQUEST_BULK", resource="payment_requests",
              ip=client_ip(request), meta={"action": payload.action, "processed": processed,
                                           "failed": len(results) - processed})
    return ok({"processed": processed, "failed": len(results) - processed, "results": results})


@router.get("/payment-requests/instructor/{instructor_id}/history",
            response_model=Envelope[List[schemas.PaymentRequestResponse]])
def instructor_history(
    instructor_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    allowed = {Role.ACCOUNTANT.value, Role.ADMIN.value, Role.HR.value}
    if current_user.role not in allowed and current_user.id != instructor_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    requests = (
        _base_query(db)
        .filter(PaymentRequest.instructor_id == instructor_id)
        .order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
        .all()
    )
    return ok(requests)


@router.get("/payment-requests/{request_id}", response_model=Envelope[schemas.PaymentRequestResponse])
def get_payment_request(request_id: int, db: Session = Depends(get_db), current_user: User = Depends(accountant)):
    return ok(_get_request(db, request_id))


@router.post("/payment-requests/{request_id}/process", response_model=Envelope[schemas.PaymentRequestResponse])
def process_payment_request(
    request_id: int,
    payload: schemas.PaymentRequestProcess,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    payment_request = _get_request(db, request_id)
    payroll.process_request(db, payment_request, payload.action, payload.notes, current_user.id)
    db.commit()
    db.refresh(payment_request)

    write_log(db, user_id=current_user.id, action="PAYMENT_REQUEST_PROCESS", resource="payment_requests",
              ip=client_ip(request), meta={"id": payment_request.id, "result": payment_request.status.value})
    return ok(payment_request)


@router.post("/payment-requests/{request_id}/complete", response_model=Envelope[schemas.PaymentRequestResponse])
def complete_payment_request(
    request_id: int,
    payload: schemas.PaymentRequestComplete,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(accountant),
):
    payment_request = _get_request(db, request_id)
    payroll.complete_request(db, payment_request, payload.payment_method, current_user.id)
    db.commit()
    db.refresh(payment_request)
    notifications.payment_request_completed(db, payment_request)
    db.commit()

    write_log(db, user_id=current_user.id, action="PAYMENT_REQUEST_COMPLETE", resource="payment_requests",
              ip=client_ip(request), meta={"id": payment_request.id, "amount": str(payment_request.amount)})
    return ok(payment_request)


# =========================
# HR
# =========================
@router.get("/hr/returned-payment-requests", response_model=Envelope[List[schemas.PaymentRequestResponse]])
def returned_requests(db: Session = Depends(get_db), current_user: User = Depends(hr)):
    requests = (
        _base_query(db)
        .filter(PaymentRequest.status == PaymentRequestStatus.RETURNED_TO_HR)
        .order_by(PaymentRequest.processed_at.asc(), PaymentRequest.id.asc())
        .all()
    )
    return ok(requests)


@router.post("/hr/payment-requests/reconcile", response_model=Envelope[schemas.ReconcileResult])
def reconcile_payment_requests(request: Request, db: Session = Depends(get_db), current_user: User = Depends(hr)):
    created = payroll.reconcile_missing(db)
    db.commit()
    for payment_request in created:
        db.refresh(payment_request)

    write_log(db, user_id=current_user.id, action="PAYMENT_REQUEST_RECONCILE", resource="payment_requests",
              ip=client_ip(request), meta={"created": [r.id for r in created]})
    return ok({"created": len(created), "payment_requests": created})


@router.post("/hr/payment-requests/{request_id}/resubmit", response_model=Envelope[schemas.PaymentRequestResponse])
def resubmit_payment_request(
    request_id: int,
    payload: schemas.PaymentRequestResubmit,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(hr),
):
    payment_request = _get_request(db, request_id)
    payroll.resubmit_request(db, payment_request, payload.notes, payload.recalculate)
    db.commit()
    db.refresh(payment_request)

    write_log(db, user_id=current_user.id, action="PAYMENT_REQUEST_RESUBMIT", resource="payment_requests",
              ip=client_ip(request), meta={"id": payment_request.id, "amount": str(payment_request.amount)})
    return ok(payment_request)
