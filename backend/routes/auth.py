# backend/routes/auth.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from sqlalchemy import func, or_
from utils.hashing import get_password_hash, verify_password
from utils.tokenJWT import create_access_token, decode_token, get_current_user, get_token, token_expiry
from utils.audit import write_log, client_ip
from utils import token_blacklist
from models.users import User
from schemas import user as schemas
from schemas.common import Envelope, ok
from database import get_db

router = APIRouter(prefix="/auth", tags=["Auth"])


# Authenticate user and issue JWT token
@router.post("/login", response_model=Envelope[schemas.Token])
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    login_name = payload.username.strip()
    db_user = (
        db.query(User)
        .filter(or_(User.username == login_name, func.lower(User.email) == login_name.lower()))
        .first()
    )

    # Validate credentials and log failure on error
    if not db_user or not db_user.is_active or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"username": login_name})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    access_token = create_access_token(data={
        "sub": db_user.username,
        "uid": db_user.id,
        "role": db_user.role,
        "organization_id": db_user.organization_id,
    })

    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"username": db_user.username})

    return ok({
        "access_token": access_token,
        "token_type": "bearer",
        "expires_at": token_expiry(decode_token(access_token)),
        "user": db_user,
    })


# Revoke the presented token until it expires
@router.post("/logout", response_model=Envelope[dict])
def logout(
    request: Request,
    token: str = Depends(get_token),
    db: Session = Depends(get_db),
):
    try:
        payload = decode_token(token)
    except HTTPException:
        # Expired or forged tokens are already unusable
        return ok({}, message="Logged out")

    token_blacklist.add(db, token, expires_at=token_expiry(payload), user_id=payload.get("uid"))
    write_log(db, user_id=payload.get("uid"), action="LOGOUT", resource="auth",
              status="SUCCESS", ip=client_ip(request))
    return ok({}, message="Logged out")


# Retrieve current authenticated user details
@router.get("/me", response_model=Envelope[schemas.UserResponse])
def me(current_user: User = Depends(get_current_user)):
    return ok(current_user)


@router.post("/change-password", response_model=Envelope[dict])
def change_password(
    payload: schemas.PasswordChange,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.password_hash):
        write_log(db, user_id=current_user.id, action="PASSWORD_CHANGE", resource="auth",
                  status="FAIL", ip=client_ip(request))
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    current_user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    write_log(db, user_id=current_user.id, action="PASSWORD_CHANGE", resource="auth",
              status="SUCCESS", ip=client_ip(request))
    return ok({}, message="Password updated")
