from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from conduit.database import get_db
from conduit.dependencies import get_current_user_id
from conduit.schemas import UserLoginRequest, UserRegisterRequest, UserResponse, UserUpdateRequest
from conduit.services import user_service

router = APIRouter(prefix="/api/v1", tags=["users"])

@router.post("/users", status_code=201, response_model=UserResponse)
async def register(payload: UserRegisterRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.register(db, payload.user)

@router.post("/users/login", response_model=UserResponse)
async def login(payload: UserLoginRequest, db: AsyncSession = Depends(get_db)):
    return await user_service.login(db, payload.user)

@router.get("/user", response_model=UserResponse)
async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_current_user(db, user_id)

@router.put("/user", response_model=UserResponse)
async def update_current_user(
    payload: UserUpdateRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.update_user(db, user_id, payload.user)
