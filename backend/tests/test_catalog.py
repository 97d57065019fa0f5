from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import tube_payload
from stockatelier.core.errors import DuplicateMaterialError, ForbiddenError, InvalidBusinessRuleError
from stockatelier.db.models.movement import MovementType
from stockatelier.schemas.material import MaterialCreate
from stockatelier.services import catalog_service, ledger_service


def paint_payload(**overrides) -> MaterialCreate:
    data = dict(
        category="Peinture & Diluants",
        sub_type="Peinture",
        spec_text="RAL 9005",
        package_size=Decimal("5"),
        package_unit="L",
        unit_type="BIDON",
    )
    data.update(overrides)
    return MaterialCreate(**data)


def test_fingerprint_is_ordered_and_normalized():
    assert catalog_service.build_fingerprint(tube_payload()) == "tubes|acier|carré|40|2|barre|barre_6m"
    assert catalog_service.build_fingerprint(paint_payload()) == "peinture-&-diluants|peinture|5|l|ral-9005|bidon"


def test_fingerprint_ignores_case_padding_and_quantities():
    a = tube_payload()
    b = tube_payload(material_kind="  ACIER ", shape_type="CARRÉ", quantity=12, alert_threshold=1)
    assert catalog_service.build_fingerprint(a) == catalog_service.build_fingerprint(b)


def test_fingerprint_decimal_package_size_is_canonical():
    assert catalog_service.build_fingerprint(paint_payload(package_size=Decimal("5.000"))) == (
        catalog_service.build_fingerprint(paint_payload(package_size=Decimal("5")))
    )


def test_display_names_and_unit_labels():
    t = tube_payload()
    assert catalog_service.rule_for(t.category).display_name(t) == "Tube Carré Acier 40 x 40 x 2 mm"
    assert catalog_service.build_unit_label(t) == "barre 6 m"

    sheet = MaterialCreate(
        category="Tôles",
        material_kind="Inox",
        thickness_mm=2,
        unit_type="FEUILLE",
        unit_variant="FEUILLE_CUSTOM",
        sheet_width_mm=1500,
        sheet_height_mm=3000,
    )
    assert catalog_service.rule_for(sheet.category).display_name(sheet) == "Tôle Inox 2 mm"
    assert catalog_service.build_unit_label(sheet) == "feuille 1500 x 3000 mm"

    p = paint_payload()
    assert catalog_service.rule_for(p.category).display_name(p) == "Peinture RAL 9005 5 L"
    assert catalog_service.build_unit_label(p) == "bidon"


@pytest.mark.parametrize(
    "payload",
    [
        dict(category="Tubes", unit_type="FEUILLE", unit_variant="FEUILLE_2X1"),
        dict(category="Profilés", unit_type="BARRE", unit_variant="BARRE_3M"),
        dict(category="Fers pleins", unit_type="PIECE"),
        dict(category="Tôles", unit_type="BARRE", unit_variant="BARRE_6M"),
        dict(category="Tôles", unit_type="FEUILLE", unit_variant="FEUILLE_CUSTOM", sheet_width_mm=1000),
        dict(category="Divers", unit_type="BARRE", unit_variant="BARRE_6M"),
        dict(category="Peinture & Diluants", sub_type="Diluant", unit_type="BIDON", package_unit="L"),
    ],
)
async def test_business_rules_reject(session, admin, payload):
    with pytest.raises(InvalidBusinessRuleError):
        await catalog_service.admit_material(session, admin, MaterialCreate(**payload))
    assert await catalog_service.list_materials(session) == []


async def test_admission_defaults(session, agent):
    m = await catalog_service.admit_material(session, agent, tube_payload())
    assert m.quantity == 0
    assert m.alert_threshold == 5
    assert m.active is True
    assert m.unit == "barre 6 m"
    assert m.stock_status == "critical"


async def test_initial_quantity_is_booked_in_the_ledger(session, admin):
    m = await catalog_service.admit_material(session, admin, tube_payload(quantity=10))
    assert m.quantity == 10
    movements = await ledger_service.list_movements(session, material_id=m.id)
    assert [(mv.type, mv.quantity) for mv in movements] == [(MovementType.IN, 10)]
    assert await ledger_service.replay_quantity(session, m.id) == 10


async def test_duplicate_admission_reports_existing(session, admin):
    first = await catalog_service.admit_material(session, admin, tube_payload())
    with pytest.raises(DuplicateMaterialError) as exc:
        await catalog_service.admit_material(session, admin, tube_payload(material_kind="acier", quantity=3))
    assert exc.value.existing_material_id == first.id
    assert exc.value.existing_material_name == first.name
    assert exc.value.to_dict()["existing_material_id"] == str(first.id)
    assert len(await catalog_service.list_materials(session)) == 1


async def test_archived_material_frees_its_fingerprint(session, admin):
    old = await catalog_service.admit_material(session, admin, tube_payload())
    await catalog_service.set_material_active(session, admin, old.id, active=False)

    new = await catalog_service.admit_material(session, admin, tube_payload())
    new_id = new.id
    assert new_id != old.id

    with pytest.raises(DuplicateMaterialError) as exc:
        await catalog_service.set_material_active(session, admin, old.id, active=True)
    assert exc.value.existing_material_id == new_id


async def test_settings_are_admin_only(session, admin, agent):
    m = await catalog_service.admit_material(session, admin, tube_payload(quantity=4))
    with pytest.raises(ForbiddenError):
        await catalog_service.update_material(session, agent, m.id, 2)
    with pytest.raises(ForbiddenError):
        await catalog_service.set_material_active(session, agent, m.id, active=False)

    m = await catalog_service.update_material(session, admin, m.id, 2)
    assert m.alert_threshold == 2
    assert m.quantity == 4
    assert m.stock_status == "ok"
