from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..permissions import RequestContext, require_branch
from ..schemas import BranchDeleteOut, BranchIn, BranchOut, BranchUpdateIn
from ..security import get_context
from ..services import branches as branch_service

router = APIRouter(prefix="/api/branches", tags=["branches"])


@router.get("", response_model=List[BranchOut])
def api_list_branches(ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return branch_service.list_branches(db, ctx)


@router.get("/{branch_id}", response_model=BranchOut)
def api_get_branch(branch_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    require_branch(ctx, branch_id)
    return branch_service.get_branch(db, branch_id)


@router.post("", response_model=BranchOut, status_code=201)
def api_create_branch(payload: BranchIn, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return branch_service.create_branch(db, ctx, payload)


@router.put("/{branch_id}", response_model=BranchOut)
def api_update_branch(branch_id: int, payload: BranchUpdateIn, ctx: RequestContext = Depends(get_context),
                      db: Session = Depends(get_db)):
    return branch_service.update_branch(db, ctx, branch_id, payload)


@router.delete("/{branch_id}", response_model=BranchDeleteOut)
def api_delete_branch(branch_id: int, ctx: RequestContext = Depends(get_context), db: Session = Depends(get_db)):
    return branch_service.delete_branch(db, ctx, branch_id)
