from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .db import Agent, Meeting, User
from ..helpers import now_ts, to_iso


def agent_to_dict(a: Agent, meeting_count: int = 0) -> Dict[str, Any]:
    return {
        "id": a.id,
        "name": a.name,
        "userId": a.user_id,
        "instructions": a.instructions,
        "meetingCount": int(meeting_count or 0),
        "createdAt": to_iso(a.created_at),
        "updatedAt": to_iso(a.updated_at),
    }


def meeting_to_dict(m: Meeting, agent_name: Optional[str] = None
                    ) -> Dict[str, Any]:
    return {
        "id": m.id,
        "name": m.name,
        "userId": m.user_id,
        "agentId": m.agent_id,
        "agentName": agent_name,
        "status": m.status,
        "startedAt": to_iso(m.started_at),
        "endedAt": to_iso(m.ended_at),
        "transcriptUrl": m.transcript_url,
        "recordingUrl": m.recording_url,
        "summary": m.summary,
        "createdAt": to_iso(m.created_at),
        "updatedAt": to_iso(m.updated_at),
    }


async def list_agents(
    db: AsyncSession, user_id: Optional[str] = None
) -> List[Tuple[Agent, int]]:
    q = (
        select(Agent, func.count(Meeting.id))
        .outerjoin(Meeting, Meeting.agent_id == Agent.id)
        .group_by(Agent.id)
        .order_by(Agent.created_at.desc())
    )
    if user_id is not None:
        q = q.where(Agent.user_id == user_id)
    result = await db.execute(q)
    return [(a, int(n)) for a, n in result.all()]


async def get_agent(db: AsyncSession, agent_id: str) -> Optional[Agent]:
    return await db.get(Agent, agent_id)


async def create_agent(
    db: AsyncSession, user_id: str, name: str, instructions: str
) -> Agent:
    ts = now_ts()
    agent = Agent(
        name=name, user_id=user_id, instructions=instructions,
        created_at=ts, updated_at=ts,
    )
    db.add(agent)
    await db.commit()
    return agent


async def list_meetings(
    db: AsyncSession, user_id: str
) -> List[Tuple[Meeting, str]]:
    """The user's meetings, newest first, paired with the agent name."""
    result = await db.execute(
        select(Meeting, Agent.name)
        .join(Agent, Meeting.agent_id == Agent.id)
        .join(User, Meeting.user_id == User.id)
        .where(Meeting.user_id == user_id)
        .order_by(Meeting.created_at.desc())
    )
    return [(m, agent_name) for m, agent_name in result.all()]


async def create_meeting(
    db: AsyncSession, user_id: str, agent_id: str, name: str
) -> Meeting:
    ts = now_ts()
    meeting = Meeting(
        name=name, user_id=user_id, agent_id=agent_id, status="upcoming",
        created_at=ts, updated_at=ts,
    )
    db.add(meeting)
    await db.commit()
    return meeting
