"""Build the Gmail search query for a project's correspondence."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from atelier_api.db.models.studio import Project
from atelier_api.mailbox.errors import ProjectNotFound


@dataclass(frozen=True)
class CorrespondenceQuery:
    """Search query for a project, or the no-contacts state when ``query`` is None."""

    query: str | None
    addresses: list[str] = field(default_factory=list)

    @property
    def no_contacts(self) -> bool:
        return self.query is None


def compose_query(addresses: Iterable[str]) -> str:
    """``from:a OR to:a OR from:b OR to:b ...`` in the given address order."""
    return " OR ".join(f"from:{address} OR to:{address}" for address in addresses)


def collect_addresses(project: Project) -> list[str]:
    """Client emails first, then contact emails; blanks are skipped."""
    addresses: list[str] = []
    for person in [*project.clients, *project.contacts]:
        if person.email and person.email.strip():
            addresses.append(person.email.strip())
    return addresses


async def build_query(session: AsyncSession, project_id: UUID, owner_id: UUID) -> CorrespondenceQuery:
    """Load the owner's project and derive its correspondence query.

    A project owned by someone else is reported exactly like a missing one.
    """
    stmt = (
        select(Project)
        .where(Project.id == project_id, Project.owner_id == owner_id)
        .options(selectinload(Project.clients), selectinload(Project.contacts))
    )
    project = (await session.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise ProjectNotFound()

    addresses = collect_addresses(project)
    if not addresses:
        return CorrespondenceQuery(query=None)
    return CorrespondenceQuery(query=compose_query(addresses), addresses=addresses)
