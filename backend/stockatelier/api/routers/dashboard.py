from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.api.deps import get_current_principal, get_db
from stockatelier.core.config import settings
from stockatelier.schemas.material import MaterialOut
from stockatelier.schemas.movement import DashboardOut, MovementOut, StockStatsOut
from stockatelier.services.authz import Principal
from stockatelier.services.dashboard_service import dashboard


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardOut)
async def get_dashboard(
    _: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> DashboardOut:
    d = await dashboard(db, recent=settings.dashboard_recent_movements)
    return DashboardOut(
        stats=StockStatsOut.model_validate(d.stats),
        alerts=[MaterialOut.model_validate(m) for m in d.alerts],
        recent_movements=[MovementOut.model_validate(m) for m in d.recent_movements],
    )
