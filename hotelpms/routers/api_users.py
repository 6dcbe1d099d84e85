from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..permissions import RequestContext
from ..schemas import UserCreateIn, UserOut, UserUpdateIn
from ..security import get_context
from ..services import users as user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("", response_model=List[UserOut])
def api_list_users(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return user_service.list_users(db, ctx)


@router.get("/{user_id}", response_model=UserOut)
def api_get_user(user_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return user_service.get_user(db, ctx, user_id)


@router.post("", response_model=UserOut, status_code=201)
def api_create_user(payload: UserCreateIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return user_service.create_user(db, ctx, payload)


@router.put("/{user_id}", response_model=UserOut)
def api_update_user(user_id: int, payload: UserUpdateIn, ctx: RequestContext = Depends(get_context),
                    db: Session = Depends(get_db)):
    return user_service.update_user(db, ctx, user_id, payload)


@router.delete("/{user_id}", status_code=204)
def api_delete_user(user_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    user_service.deactivate_user(db, ctx, user_id)
    return Response(status_code=204)
