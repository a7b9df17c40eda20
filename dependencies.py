from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from errors import AuthenticationError, ForbiddenError, RoleRequiredError
from models import Role, User
from security import decode_token, token_email
from services.roles import (
    classify_role_and_department,
    is_institutional_email,
    normalize_email,
)

bearer_scheme = HTTPBearer(auto_error=False)


def resolve_user(db: Session, email: str, full_name: Optional[str] = None) -> User:
    """
    Load the user behind a verified email, provisioning them on first sight.

    Role and department are re-derived from the address on every call so a
    change to the super-admin list or mailbox map takes effect immediately.
    """
    email = normalize_email(email)
    if not is_institutional_email(email):
        raise ForbiddenError("Domain not allowed")
    role, department = classify_role_and_department(email)

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        user = User(email=email, full_name=full_name, role=role, department=department)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Provisioned by a concurrent request.
            db.rollback()
            user = db.query(User).filter(User.email == email).first()
        db.refresh(user)
    elif user.role != role or user.department != department:
        user.role = role
        user.department = department
        db.commit()
        db.refresh(user)
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Missing or invalid authorization header")
    payload = decode_token(credentials.credentials)
    return resolve_user(db, token_email(payload), payload.get("name"))


def require_role(*roles: Role) -> Callable:
    def role_checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise RoleRequiredError("Insufficient permissions")
        return user

    return role_checker
