from __future__ import annotations

import json

import pytest

from invoicedoc.core.errors import TemplateImportError
from invoicedoc.data.models import SectionKind, TemplateSection
from invoicedoc.data.templates import (
    DEFAULT_TEMPLATES,
    REQUIRED_IMPORT_KEYS,
    create_default_template,
    export_template,
    get_default_template,
    import_template,
    ordered_sections,
    update_section_at,
)


def _without_updated(tpl) -> dict:
    return tpl.model_dump(exclude={"updated_at"})


def test_export_import_round_trip() -> None:
    original = DEFAULT_TEMPLATES[1].model_copy(update={"custom_css": '{"footer": {"placement": "every-page"}}'})
    restored = import_template(export_template(original))

    assert _without_updated(restored) == _without_updated(original)
    assert restored.updated_at >= original.updated_at


def test_import_as_new_assigns_identity() -> None:
    original = DEFAULT_TEMPLATES[0]
    copy = import_template(export_template(original), as_new=True)

    assert copy.id.startswith("template_") and copy.id != original.id
    assert copy.created_at >= original.created_at
    assert copy.name == original.name
    assert copy.sections == original.sections


@pytest.mark.parametrize("key", REQUIRED_IMPORT_KEYS)
def test_import_rejects_missing_required_key(key) -> None:
    data = json.loads(export_template(create_default_template()))
    del data[key]
    with pytest.raises(TemplateImportError):
        import_template(json.dumps(data))


@pytest.mark.parametrize("payload", ["{broken", "[]", '"just text"'])
def test_import_rejects_bad_payloads(payload) -> None:
    with pytest.raises(TemplateImportError):
        import_template(payload)


def test_import_rejects_invalid_fields() -> None:
    data = json.loads(export_template(create_default_template()))
    data["sections"] = [{"id": "x", "kind": "sidebar"}]
    with pytest.raises(TemplateImportError):
        import_template(data)
    # Import errors are configuration errors, so ValueError handlers catch them too
    with pytest.raises(ValueError):
        import_template(data)


def test_import_accepts_legacy_section_names() -> None:
    data = json.loads(export_template(create_default_template()))
    data["sections"] = [
        {"id": "a", "kind": "companyInfo", "position": 1},
        {"id": "b", "kind": "items", "position": 2},
        {"id": "c", "kind": "qrCode", "position": 3, "is_visible": False},
    ]
    tpl = import_template(data)
    assert [s.kind for s in tpl.sections] == [SectionKind.ISSUER_INFO, SectionKind.LINE_ITEMS, SectionKind.PAYMENT_QR]


def test_update_section_at_returns_patched_copy() -> None:
    tpl = create_default_template()
    tpl.sections[4].style["borderStyle"] = "solid"

    patched = update_section_at(tpl, 4, {"is_visible": False, "style": {"striped": "true"}})

    assert patched.sections[4].is_visible is False
    assert patched.sections[4].style == {"borderStyle": "solid", "striped": "true"}
    assert tpl.sections[4].is_visible is True
    assert tpl.sections[4].style == {"borderStyle": "solid"}
    assert patched.updated_at >= tpl.updated_at


def test_update_section_at_rejects_bad_input() -> None:
    tpl = create_default_template()
    with pytest.raises(IndexError):
        update_section_at(tpl, len(tpl.sections), {"is_visible": False})
    with pytest.raises(IndexError):
        update_section_at(tpl, -1, {"is_visible": False})
    with pytest.raises(ValueError):
        update_section_at(tpl, 0, {"colour": "red"})


def test_ordered_sections_is_stable_and_filters_hidden() -> None:
    tpl = create_default_template().model_copy(update={
        "sections": [
            TemplateSection(id="b", kind=SectionKind.NOTES, position=5),
            TemplateSection(id="a", kind=SectionKind.HEADER, position=1),
            TemplateSection(id="c", kind=SectionKind.SIGNATURE, position=5),
            TemplateSection(id="d", kind=SectionKind.FOOTER, position=2, is_visible=False),
        ],
    })
    assert [s.id for s in ordered_sections(tpl)] == ["a", "b", "c"]
    assert [s.id for s in ordered_sections(tpl, visible_only=False)] == ["a", "d", "b", "c"]


def test_default_templates() -> None:
    assert [t.id for t in DEFAULT_TEMPLATES] == ["classic", "modern", "minimal"]
    assert get_default_template().id == "classic"
    minimal = DEFAULT_TEMPLATES[2]
    hidden = {s.kind for s in minimal.sections if not s.is_visible}
    assert hidden == {SectionKind.NOTES, SectionKind.SIGNATURE, SectionKind.PAYMENT_QR}


def test_create_default_template() -> None:
    tpl = create_default_template()
    kinds = [s.kind for s in ordered_sections(tpl, visible_only=False)]
    assert kinds[0] == SectionKind.HEADER and kinds[-1] == SectionKind.FOOTER
    assert len(kinds) == len(SectionKind)
    assert tpl.header_title == "INVOICE"
