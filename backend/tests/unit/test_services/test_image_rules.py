"""
Test image field rules
"""

import pytest

from storekv.services.image_rules import (
    PLACEHOLDER,
    ImageFieldRule,
    embedded_fields,
    extract_appearance_images,
    section_banner_rules,
)

PAYLOAD = "data:image/png;base64,QUJD"


def test_rule_read_handles_missing_and_non_dict_nodes():
    rule = ImageFieldRule(("banner", "image"), "bannerImage")

    assert rule.read({}) is None
    assert rule.read({"banner": "flat string"}) is None
    assert rule.read({"banner": {"image": PAYLOAD}}) == PAYLOAD
    assert rule.label == "banner.image"


def test_rule_write():
    rule = ImageFieldRule(("seo", "favicon"), "favicon")
    document = {"seo": {"favicon": PAYLOAD, "title": "Shop"}}

    rule.write(document, PLACEHOLDER)

    assert document == {"seo": {"favicon": PLACEHOLDER, "title": "Shop"}}


def test_section_banner_rules():
    rules = section_banner_rules({"sectionSettings": {"shop": {}, "tasks": {}}})

    assert [(r.label, r.key) for r in rules] == [
        ("sectionSettings.shop.banner", "section_shop_banner"),
        ("sectionSettings.tasks.banner", "section_tasks_banner"),
    ]
    assert section_banner_rules({"sectionSettings": []}) == []


@pytest.mark.parametrize(
    "appearance, expected",
    [
        ({"logo": PAYLOAD}, ["logo"]),
        ({"logo": PLACEHOLDER}, []),
        ({"currency": {"logo": PAYLOAD}, "seo": {"favicon": PAYLOAD}}, ["currency.logo", "seo.favicon"]),
        ({"sectionSettings": {"shop": {"banner": PAYLOAD}}}, ["sectionSettings.shop.banner"]),
        ("not an object", []),
    ],
)
def test_embedded_fields(appearance, expected):
    assert embedded_fields(appearance) == expected


def test_extract_appearance_images_leaves_inputs_untouched():
    appearance = {"logo": PAYLOAD, "banner": {"image": PAYLOAD}}
    existing = {"favicon": PAYLOAD}

    rewritten, images, moved = extract_appearance_images(appearance, existing)

    assert moved == ["logo", "banner.image"]
    assert rewritten == {"logo": PLACEHOLDER, "banner": {"image": PLACEHOLDER}}
    assert images == {"favicon": PAYLOAD, "logo": PAYLOAD, "bannerImage": PAYLOAD}
    assert appearance == {"logo": PAYLOAD, "banner": {"image": PAYLOAD}}
    assert existing == {"favicon": PAYLOAD}
