import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import Agent
from services.errors import NotFound, ValidationError


class AgentHierarchyResolver:
    """Single-parent recruiter lookups over the agents forest."""

    def __init__(self, session: AsyncSession, max_depth: int = 32):
        self.session = session
        self.max_depth = max_depth

    async def resolve_parent(self, agent_id: uuid.UUID) -> Agent | None:
        parent_id = await self.session.scalar(select(Agent.parent_agent_id).where(Agent.id == agent_id))
        if parent_id is None:
            return None
        return await self.session.get(Agent, parent_id)

    async def assert_can_attach(
        self, agent_id: uuid.UUID | None, parent_id: uuid.UUID, *, lock: bool = False
    ) -> None:
        """Reject a parent assignment that would put ``agent_id`` among its own ancestors.

        With ``lock`` every row on the walked chain stays locked until the
        caller commits, so a concurrent reassignment further up has to wait.
        """
        if agent_id is not None and parent_id == agent_id:
            raise ValidationError("An agent cannot be its own parent")
        if not await self.session.get(Agent, parent_id):
            raise NotFound(f"Parent agent {parent_id} not found")

        current = parent_id
        for _ in range(self.max_depth):
            query = select(Agent.parent_agent_id).where(Agent.id == current)
            if lock:
                query = query.with_for_update()
            current = await self.session.scalar(query)
            if current is None:
                return
            if current == agent_id:
                raise ValidationError(f"Assigning parent {parent_id} would create a cycle")
        raise ValidationError(f"Agent hierarchy deeper than {self.max_depth} levels")
