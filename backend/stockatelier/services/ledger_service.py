from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from stockatelier.core.errors import ConflictStateError, InsufficientStockError, NotFoundError, ValidationError
from stockatelier.db.models.material import Material
from stockatelier.db.models.movement import Movement, MovementType
from stockatelier.db.session import unit_of_work
from stockatelier.services.authz import Principal

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MovementResult:
    movement: Movement
    material: Material


async def append_movement(
    session: AsyncSession,
    material: Material,
    movement_type: MovementType,
    quantity: int,
    note: str | None,
    actor_id: UUID,
) -> Movement:
    """
    Book one movement and apply it to the material's quantity.

    The quantity is changed with a single conditional UPDATE
    (``quantity = quantity - n WHERE quantity >= n`` for withdrawals), so two
    concurrent writers can neither lose an update nor drive stock below zero.
    Does not commit; callers run it inside ``unit_of_work``.
    """
    now = _utcnow()
    before = int(material.quantity)

    stmt = update(Material).where(Material.id == material.id)
    if movement_type == MovementType.OUT:
        stmt = stmt.where(Material.quantity >= quantity).values(
            quantity=Material.quantity - quantity, updated_at=now
        )
    else:
        stmt = stmt.values(quantity=Material.quantity + quantity, updated_at=now)

    res = await session.execute(stmt.execution_options(synchronize_session=False))
    if res.rowcount != 1:
        # Someone else withdrew first; report what is really left.
        await session.refresh(material)
        logger.warning(
            "stock withdrawal lost race: material_id=%s, requested=%s, available=%s",
            material.id,
            quantity,
            material.quantity,
        )
        raise InsufficientStockError(material.id, int(material.quantity), int(quantity))

    mv = Movement(
        material_id=material.id,
        type=movement_type,
        quantity=int(quantity),
        note=note,
        user_id=actor_id,
        created_at=now,
    )
    session.add(mv)
    await session.flush()
    await session.refresh(material)

    logger.info(
        "stock movement recorded: movement_id=%s, material_id=%s, type=%s, quantity=%s, before=%s, after=%s, user_id=%s",
        mv.id,
        material.id,
        movement_type.value,
        quantity,
        before,
        material.quantity,
        actor_id,
    )
    return mv


async def record_movement(
    session: AsyncSession,
    actor: Principal,
    material_id: UUID,
    movement_type: MovementType,
    quantity: int,
    note: str | None = None,
) -> MovementResult:
    if int(quantity) <= 0:
        raise ValidationError("movement quantity must be positive", quantity=quantity)

    async with unit_of_work(session):
        material = await session.get(Material, material_id, populate_existing=True)
        if not material:
            raise NotFoundError("material not found", material_id=material_id)
        if not material.active:
            raise ConflictStateError("material is archived", material_id=material_id)
        if movement_type == MovementType.OUT and int(material.quantity) < int(quantity):
            logger.warning(
                "stock withdrawal refused: material_id=%s, requested=%s, available=%s, user_id=%s",
                material.id,
                quantity,
                material.quantity,
                actor.id,
            )
            raise InsufficientStockError(material.id, int(material.quantity), int(quantity))

        mv = await append_movement(session, material, movement_type, int(quantity), note, actor.id)

    return MovementResult(movement=mv, material=material)


async def list_movements(
    session: AsyncSession,
    material_id: UUID | None = None,
    limit: int = 50,
) -> list[Movement]:
    stmt = select(Movement).options(selectinload(Movement.material), selectinload(Movement.user))
    if material_id is not None:
        stmt = stmt.where(Movement.material_id == material_id)
    stmt = stmt.order_by(Movement.created_at.desc()).limit(limit)
    return list((await session.execute(stmt)).scalars().all())


async def replay_quantity(session: AsyncSession, material_id: UUID) -> int:
    """Sum of signed movements for a material, from the beginning of time."""
    rows = (await session.execute(select(Movement).where(Movement.material_id == material_id))).scalars().all()
    return sum(m.signed_quantity for m in rows)


async def get_movement(session: AsyncSession, movement_id: UUID) -> Movement:
    mv = await session.get(
        Movement,
        movement_id,
        options=(selectinload(Movement.material), selectinload(Movement.user)),
        populate_existing=True,
    )
    if not mv:
        raise NotFoundError("movement not found", movement_id=movement_id)
    return mv
