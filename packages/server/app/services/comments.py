"""
Flat comments on tasks.

Reading and posting follow task read access: any standing in the project,
or being the task's assignee. Only the author may edit or delete a comment;
everyone else gets ``CommentNotFound``.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import CommentNotFound
from app.models.base import utcnow
from app.models.comment import Comment
from app.models.user import User
from app.services.tasks import get_task
from tracker_shared.schemas.comments import CommentCreate, CommentUpdate

log = structlog.get_logger()


def comment_to_dict(comment: Comment, author: User) -> dict:
    return {
        "id": comment.id,
        "task_id": comment.task_id,
        "author_id": comment.author_id,
        "author_name": author.name,
        "content": comment.content,
        "created_at": comment.created_at,
        "updated_at": comment.updated_at,
    }


async def list_comments(session: AsyncSession, user: User, task_id: uuid.UUID) -> list[dict]:
    task, _ = await get_task(session, user, task_id)
    result = await session.execute(
        select(Comment, User)
        .join(User, User.id == Comment.author_id)
        .where(Comment.task_id == task.id)
        .order_by(Comment.created_at)
    )
    return [comment_to_dict(c, u) for c, u in result.all()]


async def create_comment(
    session: AsyncSession, user: User, task_id: uuid.UUID, body: CommentCreate
) -> dict:
    task, _ = await get_task(session, user, task_id)
    comment = Comment(task_id=task.id, author_id=user.id, content=body.content)
    session.add(comment)
    await session.flush()

    log.info("comment.created", comment_id=str(comment.id), task_id=str(task.id))
    return comment_to_dict(comment, user)


async def _get_own_comment(
    session: AsyncSession, user: User, task_id: uuid.UUID, comment_id: uuid.UUID
) -> Comment:
    # Authors who lost access to the task lose their comments too.
    await get_task(session, user, task_id)
    comment = await session.get(Comment, comment_id)
    if not comment or comment.task_id != task_id or comment.author_id != user.id:
        raise CommentNotFound()
    return comment


async def update_comment(
    session: AsyncSession,
    user: User,
    task_id: uuid.UUID,
    comment_id: uuid.UUID,
    body: CommentUpdate,
) -> dict:
    comment = await _get_own_comment(session, user, task_id, comment_id)
    comment.content = body.content
    comment.updated_at = utcnow()
    session.add(comment)
    await session.flush()

    log.info("comment.updated", comment_id=str(comment.id))
    return comment_to_dict(comment, user)


async def delete_comment(
    session: AsyncSession, user: User, task_id: uuid.UUID, comment_id: uuid.UUID
) -> None:
    comment = await _get_own_comment(session, user, task_id, comment_id)
    await session.delete(comment)
    await session.flush()
    log.info("comment.deleted", comment_id=str(comment_id), task_id=str(task_id))
