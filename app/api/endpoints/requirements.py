# api/endpoints/requirements.py

import logging
import math
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select, func
from sqlalchemy import false, or_
from typing import Dict, Optional
from app.models.requirement import Requirement
from app.models.user import User
from app.schemas.requirement import (
    MockupRead,
    OwnerRead,
    RequirementCreate,
    RequirementPage,
    RequirementRead,
    RequirementSummary,
    RequirementUpdate,
)
from app.api.endpoints.auth import get_current_user
from app.core.errors import PipelineError, PipelineStateError
from app.database import get_session
from app.services.pipeline import PipelineOrchestrator, RecordState, get_orchestrator, record_state

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_FIELDS = ("app_name", "created_by", "status")


def owner_read(owner: Optional[User]) -> Optional[OwnerRead]:
    if owner is None:
        return None
    return OwnerRead(id=owner.id, username=owner.username, real_name=owner.real_name, avatar=owner.avatar)


def requirement_read(requirement: Requirement, owner: Optional[User] = None) -> RequirementRead:
    return RequirementRead(
        id=requirement.id,
        description=requirement.description,
        app_name=requirement.app_name,
        entities=requirement.entities or [],
        roles=requirement.roles or [],
        features=requirement.features or [],
        raos=requirement.raos or [],
        mockup_markup=requirement.mockup_markup,
        state=record_state(requirement).value,
        owner_id=requirement.owner_id,
        created_by=owner_read(owner),
        created_at=requirement.created_at,
    )


def pipeline_http_error(exc: PipelineError, requirement_id: int) -> HTTPException:
    code = status.HTTP_409_CONFLICT if isinstance(exc, PipelineStateError) else status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail={"error": str(exc), "requirement_id": requirement_id})


def get_owned_requirement(session: Session, requirement_id: int, current_user: User) -> Requirement:
    requirement = session.get(Requirement, requirement_id)
    if not requirement:
        raise HTTPException(status_code=404, detail="Requirement not found")
    if requirement.owner_id != current_user.id:
        raise HTTPException(status_code=403, detail="Only the creator can modify this requirement")
    return requirement


def state_condition(term: str):
    wanted = term.strip().lower().replace(" ", "_")
    conditions = []
    for state in RecordState:
        if wanted not in state.value:
            continue
        if state is RecordState.COMPLETED:
            conditions.append(Requirement.mockup_markup.is_not(None))
        elif state is RecordState.EXTRACTED:
            conditions.append(Requirement.app_name.is_not(None) & Requirement.mockup_markup.is_(None))
        else:
            conditions.append(Requirement.app_name.is_(None))
    # Unknown status matches nothing.
    return or_(*conditions) if conditions else false()


def paginate(session: Session, query, page: int, limit: int) -> RequirementPage:
    total = session.exec(select(func.count()).select_from(query.subquery())).one()
    rows = session.exec(
        query.order_by(Requirement.created_at.desc(), Requirement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    owner_ids = {r.owner_id for r in rows}
    owners: Dict[int, User] = {}
    if owner_ids:
        owners = {u.id: u for u in session.exec(select(User).where(User.id.in_(list(owner_ids)))).all()}

    return RequirementPage(
        requirements=[
            RequirementSummary(
                id=r.id,
                app_name=r.app_name,
                description=r.description,
                state=record_state(r).value,
                has_mockup=bool(r.mockup_markup),
                created_by=owner_read(owners.get(r.owner_id)),
                created_at=r.created_at,
            )
            for r in rows
        ],
        total_pages=math.ceil(total / limit) if total else 0,
        current_page=page,
        total=total,
    )


@router.post("/", response_model=RequirementRead, status_code=status.HTTP_201_CREATED)
def create_requirement(
    requirement_in: RequirementCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    requirement = Requirement(description=requirement_in.description, owner_id=current_user.id)
    session.add(requirement)
    session.commit()
    session.refresh(requirement)

    try:
        orchestrator.run_extraction(session, requirement)
    except PipelineError as exc:
        logger.error("RAOS extraction failed for requirement %s: %s", requirement.id, exc)
        raise pipeline_http_error(exc, requirement.id)
    return requirement_read(requirement, current_user)


@router.get("/", response_model=RequirementPage)
def list_requirements(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    search: Optional[str] = None,
    search_by: str = Query("app_name"),
    session: Session = Depends(get_session),
):
    if search_by not in SEARCH_FIELDS:
        raise HTTPException(status_code=400, detail="Invalid search field")

    query = select(Requirement)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        if search_by == "app_name":
            query = query.where(Requirement.app_name.ilike(pattern))
        elif search_by == "created_by":
            query = query.join(User, User.id == Requirement.owner_id).where(
                or_(User.username.ilike(pattern), User.real_name.ilike(pattern))
            )
        else:
            query = query.where(state_condition(search))
    return paginate(session, query, page, limit)


@router.get("/my", response_model=RequirementPage)
def list_my_requirements(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=1000),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    query = select(Requirement).where(Requirement.owner_id == current_user.id)
    return paginate(session, query, page, limit)


@router.get("/{requirement_id}", response_model=RequirementRead)
def get_requirement(requirement_id: int, session: Session = Depends(get_session)):
    requirement = session.get(Requirement, requirement_id)
    if not requirement:
        raise HTTPException(status_code=404, detail="Requirement not found")
    return requirement_read(requirement, session.get(User, requirement.owner_id))


@router.post("/{requirement_id}/extract", response_model=RequirementRead)
def retry_extraction(
    requirement_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    requirement = get_owned_requirement(session, requirement_id, current_user)
    try:
        orchestrator.run_extraction(session, requirement)
    except PipelineError as exc:
        logger.error("RAOS extraction failed for requirement %s: %s", requirement.id, exc)
        raise pipeline_http_error(exc, requirement.id)
    return requirement_read(requirement, current_user)


@router.post("/{requirement_id}/generate-ui", response_model=MockupRead)
def generate_mockup(
    requirement_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    requirement = session.get(Requirement, requirement_id)
    if not requirement:
        raise HTTPException(status_code=404, detail="Requirement not found")
    try:
        html = orchestrator.run_mockup(session, requirement)
    except PipelineError as exc:
        logger.error("Mockup generation failed for requirement %s: %s", requirement.id, exc)
        raise pipeline_http_error(exc, requirement.id)
    return MockupRead(id=requirement.id, mockup_markup=html)


@router.put("/{requirement_id}", response_model=RequirementRead)
def update_requirement(
    requirement_id: int,
    requirement_in: RequirementUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    requirement = get_owned_requirement(session, requirement_id, current_user)
    if record_state(requirement) is RecordState.COMPLETED:
        raise HTTPException(status_code=409, detail="Mockup already generated; requirement is read-only")

    update_data = requirement_in.dict(exclude_unset=True, exclude_none=True)
    for key, value in update_data.items():
        setattr(requirement, key, value)
    session.add(requirement)
    session.commit()
    session.refresh(requirement)
    return requirement_read(requirement, current_user)


@router.delete("/{requirement_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_requirement(
    requirement_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    requirement = get_owned_requirement(session, requirement_id, current_user)
    session.delete(requirement)
    session.commit()
