from fastapi import APIRouter, Depends

from dependencies import get_current_user
from models import User
from schemas import UserOut

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
