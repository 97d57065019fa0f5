from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.db.models.material import Material
from stockatelier.db.models.movement import Movement
from stockatelier.services.ledger_service import list_movements


@dataclass
class StockStats:
    total: int = 0
    ok: int = 0
    low: int = 0
    critical: int = 0


@dataclass
class Dashboard:
    stats: StockStats
    alerts: list[Material] = field(default_factory=list)
    recent_movements: list[Movement] = field(default_factory=list)


async def dashboard(session: AsyncSession, recent: int = 10) -> Dashboard:
    materials = (await session.execute(select(Material).where(Material.active.is_(True)))).scalars().all()

    stats = StockStats()
    for m in materials:
        stats.total += 1
        setattr(stats, m.stock_status, getattr(stats, m.stock_status) + 1)

    alerts = sorted(
        (m for m in materials if m.quantity <= m.alert_threshold),
        key=lambda m: (m.quantity, m.name),
    )
    return Dashboard(stats=stats, alerts=alerts, recent_movements=await list_movements(session, limit=recent))
