"""
Material catalog: admission, identity (fingerprint) and non-stock settings.

Category-specific validation and display naming live in one rule object per
category (``CATEGORY_RULES``). The catalog never writes ``Material.quantity``;
an initial stock given at admission is booked through the ledger.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stockatelier.core.errors import DuplicateMaterialError, InvalidBusinessRuleError, NotFoundError
from stockatelier.db.models.material import Material
from stockatelier.db.models.movement import MovementType
from stockatelier.db.session import unit_of_work
from stockatelier.schemas.material import MaterialCategory, MaterialCreate, UnitType
from stockatelier.services.authz import Principal, require_admin
from stockatelier.services.ledger_service import append_movement

logger = logging.getLogger(__name__)

BAR_VARIANTS = ("BARRE_6M", "BARRE_12M")
SHEET_VARIANTS = ("FEUILLE_2X1", "FEUILLE_244X122", "FEUILLE_CUSTOM")

_WS = re.compile(r"\s+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _num(value: int | Decimal | None) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


def _squash(*parts: object) -> str:
    return _WS.sub(" ", " ".join(str(p) for p in parts if p not in (None, ""))).strip()


def _shape(data: MaterialCreate) -> str:
    return (data.shape_type or "").lower()


class CategoryRule:
    """Validation + naming for one material category."""

    category: MaterialCategory

    def validate(self, data: MaterialCreate) -> None:
        return None

    def display_name(self, data: MaterialCreate) -> str:
        return _squash(data.sub_type or self.category.value, data.spec_text)


class _BarStockRule(CategoryRule):
    def validate(self, data: MaterialCreate) -> None:
        if data.unit_type != UnitType.BARRE:
            raise InvalidBusinessRuleError("this category must be stocked by the bar", category=self.category.value)
        if data.unit_variant not in BAR_VARIANTS:
            raise InvalidBusinessRuleError("choose a 6 m or 12 m bar", category=self.category.value)

    @staticmethod
    def _with_thickness(dims: str, data: MaterialCreate) -> str:
        if data.thickness_mm is None:
            return f"{dims} mm" if dims else ""
        return f"{dims} x {data.thickness_mm} mm" if dims else f"{data.thickness_mm} mm"


class TubeRule(_BarStockRule):
    category = MaterialCategory.TUBES

    def display_name(self, data: MaterialCreate) -> str:
        a, b = _num(data.dim_a_mm), _num(data.dim_b_mm)
        shape = _shape(data)
        if "rond" in shape:
            dims = f"Ø{a}"
        elif "carr" in shape:
            dims = f"{a} x {a}"
        elif "rect" in shape:
            dims = f"{a} x {b}"
        else:
            dims = " x ".join(p for p in (a, b) if p)
        return _squash("Tube", data.shape_type, data.material_kind, self._with_thickness(dims, data))


class ProfileRule(_BarStockRule):
    category = MaterialCategory.PROFILES

    def display_name(self, data: MaterialCreate) -> str:
        dims = " x ".join(p for p in (_num(data.dim_a_mm), _num(data.dim_b_mm)) if p)
        return _squash("Profilé", data.sub_type, data.material_kind, self._with_thickness(dims, data))


class SolidBarRule(_BarStockRule):
    category = MaterialCategory.SOLID_BARS

    def display_name(self, data: MaterialCreate) -> str:
        shape = _shape(data)
        a = _num(data.dim_a_mm)
        if "rond" in shape:
            return _squash("Fer plein rond", data.material_kind, f"Ø{a} mm")
        if "carr" in shape:
            return _squash("Fer plein carré", data.material_kind, f"{a} mm")
        if "plat" in shape:
            return _squash("Fer plat", data.material_kind, self._with_thickness(a, data))
        return _squash("Fer plein", data.shape_type, data.material_kind)


class SheetRule(CategoryRule):
    category = MaterialCategory.SHEETS

    def validate(self, data: MaterialCreate) -> None:
        if data.unit_type != UnitType.FEUILLE:
            raise InvalidBusinessRuleError("sheets must be stocked by the sheet", category=self.category.value)
        if data.unit_variant not in SHEET_VARIANTS:
            raise InvalidBusinessRuleError("invalid sheet format", category=self.category.value)
        if data.unit_variant == "FEUILLE_CUSTOM" and not (data.sheet_width_mm and data.sheet_height_mm):
            raise InvalidBusinessRuleError(
                "a custom sheet format requires width and height", category=self.category.value
            )

    def display_name(self, data: MaterialCreate) -> str:
        thickness = f"{data.thickness_mm} mm" if data.thickness_mm is not None else None
        return _squash("Tôle", data.material_kind, thickness)


class MiscRule(CategoryRule):
    category = MaterialCategory.MISC

    def validate(self, data: MaterialCreate) -> None:
        if data.unit_type not in (UnitType.PIECE, UnitType.PAQUET):
            raise InvalidBusinessRuleError("misc items are stocked by the piece or the pack", category=self.category.value)


class ConsumableRule(CategoryRule):
    category = MaterialCategory.CONSUMABLES


class PaintRule(CategoryRule):
    category = MaterialCategory.PAINT

    def validate(self, data: MaterialCreate) -> None:
        if not data.package_size or not data.package_unit:
            raise InvalidBusinessRuleError(
                "paints and thinners need a package size and unit (kg or L)", category=self.category.value
            )

    def display_name(self, data: MaterialCreate) -> str:
        return _squash(data.sub_type or "Produit", data.spec_text, _num(data.package_size), data.package_unit)


CATEGORY_RULES: dict[MaterialCategory, CategoryRule] = {
    rule.category: rule
    for rule in (TubeRule(), SheetRule(), ProfileRule(), SolidBarRule(), MiscRule(), ConsumableRule(), PaintRule())
}


def rule_for(category: MaterialCategory | str) -> CategoryRule:
    return CATEGORY_RULES[MaterialCategory(category)]


def build_unit_label(data: MaterialCreate) -> str:
    if data.unit_type == UnitType.BARRE:
        return "barre 12 m" if data.unit_variant == "BARRE_12M" else "barre 6 m"
    if data.unit_type == UnitType.FEUILLE:
        if data.unit_variant == "FEUILLE_244X122":
            return "feuille 2,44 x 1,22 m"
        if data.unit_variant == "FEUILLE_2X1":
            return "feuille 2 x 1 m"
        if data.unit_variant == "FEUILLE_CUSTOM" and data.sheet_width_mm and data.sheet_height_mm:
            return f"feuille {data.sheet_width_mm} x {data.sheet_height_mm} mm"
        return "feuille"
    return {
        UnitType.PAQUET: "paquet",
        UnitType.PIECE: "pièce",
        UnitType.BOITE: "boîte",
        UnitType.BIDON: "bidon",
    }.get(data.unit_type, "unité")


def build_fingerprint(data: MaterialCreate) -> str:
    """
    Identity key of a stock-keeping unit, independent of its display name.

    Every present attribute, in a fixed order, lower-cased with whitespace runs
    turned into '-', joined by '|'. Absent or empty attributes are skipped.
    """
    parts = (
        data.category.value,
        data.material_kind,
        data.sub_type,
        data.shape_type,
        data.dim_a_mm,
        data.dim_b_mm,
        data.thickness_mm,
        data.sheet_width_mm,
        data.sheet_height_mm,
        data.package_size,
        data.package_unit,
        data.spec_text,
        data.unit_type.value,
        data.unit_variant,
    )
    out: list[str] = []
    for p in parts:
        if p is None:
            continue
        s = _num(p) if isinstance(p, (int, Decimal)) else str(p).strip()
        if s == "":
            continue
        out.append(_WS.sub("-", s.lower()))
    return "|".join(out)


async def _find_active_by_fingerprint(
    session: AsyncSession, fingerprint: str, exclude_id: UUID | None = None
) -> Material | None:
    stmt = select(Material).where(Material.fingerprint == fingerprint, Material.active.is_(True))
    if exclude_id is not None:
        stmt = stmt.where(Material.id != exclude_id)
    return (await session.execute(stmt)).scalars().first()


async def admit_material(session: AsyncSession, actor: Principal, data: MaterialCreate) -> Material:
    rule = rule_for(data.category)
    rule.validate(data)

    fingerprint = build_fingerprint(data)
    existing = await _find_active_by_fingerprint(session, fingerprint)
    if existing is not None:
        raise DuplicateMaterialError(existing.id, existing.name)

    now = _utcnow()
    m = Material(
        name=rule.display_name(data),
        category=data.category.value,
        sub_type=data.sub_type,
        material_kind=data.material_kind,
        shape_type=data.shape_type,
        dim_a_mm=data.dim_a_mm,
        dim_b_mm=data.dim_b_mm,
        thickness_mm=data.thickness_mm,
        sheet_width_mm=data.sheet_width_mm,
        sheet_height_mm=data.sheet_height_mm,
        package_size=data.package_size,
        package_unit=data.package_unit,
        spec_text=data.spec_text,
        unit=build_unit_label(data),
        unit_type=data.unit_type.value,
        unit_variant=data.unit_variant,
        fingerprint=fingerprint,
        quantity=0,
        alert_threshold=int(data.alert_threshold),
        active=True,
        created_at=now,
        updated_at=now,
    )

    try:
        async with unit_of_work(session):
            session.add(m)
            await session.flush()
            if data.quantity > 0:
                await append_movement(
                    session, m, MovementType.IN, int(data.quantity), note="initial stock", actor_id=actor.id
                )
    except IntegrityError:
        # A concurrent admission took the fingerprint between our check and the insert.
        winner = await _find_active_by_fingerprint(session, fingerprint)
        if winner is None:
            raise
        raise DuplicateMaterialError(winner.id, winner.name) from None

    logger.info(
        "material admitted: id=%s, name=%s, fingerprint=%s, quantity=%s, user_id=%s",
        m.id,
        m.name,
        fingerprint,
        m.quantity,
        actor.id,
    )
    return m


async def list_materials(session: AsyncSession) -> list[Material]:
    stmt = select(Material).where(Material.active.is_(True)).order_by(Material.category.asc(), Material.name.asc())
    return list((await session.execute(stmt)).scalars().all())


async def get_material(session: AsyncSession, material_id: UUID) -> Material:
    m = await session.get(Material, material_id)
    if not m:
        raise NotFoundError("material not found", material_id=material_id)
    return m


async def update_material(session: AsyncSession, actor: Principal, material_id: UUID, alert_threshold: int) -> Material:
    require_admin(actor)
    async with unit_of_work(session):
        m = await get_material(session, material_id)
        m.alert_threshold = int(alert_threshold)
        m.updated_at = _utcnow()
    return m


async def set_material_active(session: AsyncSession, actor: Principal, material_id: UUID, active: bool) -> Material:
    require_admin(actor)
    async with unit_of_work(session):
        m = await get_material(session, material_id)
        if m.active == active:
            return m
        if active:
            owner = await _find_active_by_fingerprint(session, m.fingerprint, exclude_id=m.id)
            if owner is not None:
                raise DuplicateMaterialError(
                    owner.id, owner.name, "another active material already uses this reference"
                )
        m.active = active
        m.updated_at = _utcnow()

    logger.info("material %s: id=%s, user_id=%s", "restored" if active else "archived", m.id, actor.id)
    return m
