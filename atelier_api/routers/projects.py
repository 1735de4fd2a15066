"""Owner-scoped project endpoints (the people a project's email is filtered by)."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from atelier_api.auth.session import get_current_profile
from atelier_api.db.models.studio import Profile, Project, ProjectClient, ProjectContact
from atelier_api.deps import get_session
from atelier_api.schemas.studio import (
    ClientOut,
    ContactCreate,
    ContactOut,
    PaginatedResponse,
    PersonCreate,
    ProjectCreate,
    ProjectDetail,
    ProjectOut,
)

logger = structlog.get_logger()
router = APIRouter(prefix="/api/v1/projects", tags=["projects"])


async def _get_owned_project(session: AsyncSession, project_id: UUID, owner_id: UUID) -> Project:
    """Fetch a project of *owner_id*; someone else's project is a plain 404."""
    stmt = (
        select(Project)
        .where(Project.id == project_id, Project.owner_id == owner_id)
        .options(selectinload(Project.clients), selectinload(Project.contacts))
    )
    project = (await session.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _next_position(session: AsyncSession, model, project_id: UUID) -> int:
    result = await session.execute(
        select(func.coalesce(func.max(model.position), -1)).where(model.project_id == project_id)
    )
    return result.scalar_one() + 1


@router.get("", response_model=PaginatedResponse[ProjectOut])
async def list_projects(
    session: Annotated[AsyncSession, Depends(get_session)],
    profile: Annotated[Profile, Depends(get_current_profile)],
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
):
    base = select(Project).where(Project.owner_id == profile.id)
    total = (await session.execute(select(func.count()).select_from(base.subquery()))).scalar_one()

    stmt = base.order_by(Project.created_at.desc()).offset(offset).limit(limit)
    projects = (await session.execute(stmt)).scalars().all()

    return PaginatedResponse(
        items=[ProjectOut.model_validate(p, from_attributes=True) for p in projects],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.post("", response_model=ProjectOut, status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
    profile: Annotated[Profile, Depends(get_current_profile)],
):
    project = Project(owner_id=profile.id, name=body.name)
    session.add(project)
    await session.commit()
    await session.refresh(project)

    logger.info("project_created", project_id=str(project.id), owner_id=str(profile.id))
    return ProjectOut.model_validate(project, from_attributes=True)


@router.get("/{project_id}", response_model=ProjectDetail)
async def get_project(
    project_id: UUID,
    session: Annotated[AsyncSession, Depends(get_session)],
    profile: Annotated[Profile, Depends(get_current_profile)],
):
    project = await _get_owned_project(session, project_id, profile.id)
    return ProjectDetail.model_validate(project, from_attributes=True)


@router.post("/{project_id}/clients", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
async def add_client(
    project_id: UUID,
    body: PersonCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
    profile: Annotated[Profile, Depends(get_current_profile)],
):
    await _get_owned_project(session, project_id, profile.id)
    client = ProjectClient(
        project_id=project_id,
        name=body.name,
        email=body.email,
        position=await _next_position(session, ProjectClient, project_id),
    )
    session.add(client)
    await session.commit()
    await session.refresh(client)
    return ClientOut.model_validate(client, from_attributes=True)


@router.post("/{project_id}/contacts", response_model=ContactOut, status_code=status.HTTP_201_CREATED)
async def add_contact(
    project_id: UUID,
    body: ContactCreate,
    session: Annotated[AsyncSession, Depends(get_session)],
    profile: Annotated[Profile, Depends(get_current_profile)],
):
    await _get_owned_project(session, project_id, profile.id)
    contact = ProjectContact(
        project_id=project_id,
        name=body.name,
        email=body.email,
        role=body.role,
        position=await _next_position(session, ProjectContact, project_id),
    )
    session.add(contact)
    await session.commit()
    await session.refresh(contact)
    return ContactOut.model_validate(contact, from_attributes=True)
