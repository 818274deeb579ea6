import logging

from fastapi import APIRouter, HTTPException, Depends, Request, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from petdealz.auth.auth_handler import hash_password, verify_password
from petdealz.auth.identity import IdentityContext, SessionIdentity
from petdealz.deps import current_user_id, get_engine, get_identity
from petdealz.models.auth import LoginRequest, LoginResponse, SignupRequest
from petdealz.models.user_db import User as DBUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post("/signup")
def signup(user: SignupRequest, engine=Depends(get_engine)):
    try:
        with Session(engine) as session:
            db_user = DBUser(
                name=user.name,
                email=user.email.lower(),
                hashed_password=hash_password(user.password),
            )
            session.add(db_user)
            session.commit()
    except SQLAlchemyError:
        # Duplicate emails surface here through the unique constraint.
        logger.exception("Failed to register %s", user.email)
        raise HTTPException(status_code=500, detail="Error registering user")

    logger.info("Registered user %s", user.email)
    return {"message": "User registered successfully"}


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
def login(
    data: LoginRequest,
    response: Response,
    engine=Depends(get_engine),
    identity: IdentityContext = Depends(get_identity),
):
    with Session(engine) as session:
        db_user = session.exec(select(DBUser).where(DBUser.email == data.email.lower())).first()
    if not db_user:
        raise HTTPException(status_code=400, detail="User not found")
    if not verify_password(data.password, db_user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    credential = identity.issue(db_user.id)
    if isinstance(identity, SessionIdentity):
        response.set_cookie(
            identity.cookie_name,
            credential,
            max_age=identity.ttl_minutes * 60,
            httponly=True,
            samesite="lax",
        )
    logger.info("User %s logged in", db_user.id)
    return LoginResponse(message="Login successful", credential=credential, token_type=identity.token_type)


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    identity: IdentityContext = Depends(get_identity),
):
    credential = identity.credential_from(request)
    if credential:
        identity.revoke(credential)
    if isinstance(identity, SessionIdentity):
        response.delete_cookie(identity.cookie_name)
    return {"message": "Logged out"}


@router.get("/me")
def get_current_user_info(user_id: int = Depends(current_user_id), engine=Depends(get_engine)):
    with Session(engine) as session:
        user = session.get(DBUser, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return {"id": user.id, "name": user.name, "email": user.email}
