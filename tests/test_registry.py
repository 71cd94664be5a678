import logging

import numpy as np
import pytest

from tag_pipeline.errors import ConfigurationError
from tag_pipeline.registry import (
    TagDescriptionRegistry,
    parse_standalone_tags,
    parse_tag_bundles,
)


def test_parse_standalone_tags_defaults_name():
    tags = parse_standalone_tags([{"id": 5, "size": 0.1}, {"id": 6, "size": 0.2, "name": "door"}])
    assert tags[5].frame_name == "tag_5"
    assert tags[5].size == 0.1
    assert tags[6].frame_name == "door"


@pytest.mark.parametrize(
    "raw",
    [
        {"id": 1, "size": 0.1},
        [{"size": 0.1}],
        [{"id": 1}],
        [{"id": "1", "size": 0.1}],
        [{"id": True, "size": 0.1}],
        [{"id": 1, "size": 0}],
        [{"id": 1, "size": -0.1}],
        [{"id": 1, "size": float("nan")}],
        [{"id": 1, "size": 0.1, "name": 3}],
        [{"id": 1, "size": 0.1}, {"id": 1, "size": 0.1}],
        ["tag"],
    ],
)
def test_parse_standalone_tags_rejects(raw):
    with pytest.raises(ConfigurationError) as exc_info:
        parse_standalone_tags(raw)
    assert exc_info.value.section == "standalone_tags"


def test_parse_bundle_member_transform():
    half = np.sqrt(0.5)
    (bundle,) = parse_tag_bundles(
        [
            {
                "name": "board",
                "layout": [
                    {"id": 1, "size": 0.1},
                    {"id": 2, "size": 0.05, "x": 0.3, "y": -0.1, "z": 0.02, "qw": half, "qz": half},
                ],
            }
        ]
    )
    assert bundle.name == "board"
    assert bundle.bundle_ids == [1, 2]
    assert bundle.bundle_sizes == [0.1, 0.05]
    assert np.allclose(bundle.member_transform(1), np.eye(4))

    T = bundle.member_transform(2)
    assert np.allclose(T[:3, 3], [0.3, -0.1, 0.02])
    assert np.allclose(T[:3, :3] @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])


def test_bundle_quaternion_normalized():
    (bundle,) = parse_tag_bundles([{"layout": [{"id": 1, "size": 0.1, "qw": 2.0}]}])
    assert bundle.name == "bundle_0"
    assert np.allclose(bundle.member_transform(1), np.eye(4))


@pytest.mark.parametrize(
    "raw",
    [
        [{"name": "b"}],
        [{"name": "b", "layout": []}],
        [{"name": "b", "layout": [{"id": 1, "size": 0.1}, {"id": 1, "size": 0.1}]}],
        [{"name": "b", "layout": [{"id": 1, "size": 0.1, "qw": 0.0}]}],
        [{"name": "b", "layout": [{"id": 1, "size": 0.1, "x": "left"}]}],
        "bundles",
    ],
)
def test_parse_tag_bundles_rejects(raw):
    with pytest.raises(ConfigurationError) as exc_info:
        parse_tag_bundles(raw)
    assert exc_info.value.section == "tag_bundles"


def test_bundle_size_must_match_standalone():
    standalone = parse_standalone_tags([{"id": 1, "size": 0.1}])
    with pytest.raises(ConfigurationError, match="size"):
        parse_tag_bundles([{"name": "b", "layout": [{"id": 1, "size": 0.12}]}], standalone)
    # same size is fine
    parse_tag_bundles([{"name": "b", "layout": [{"id": 1, "size": 0.1}]}], standalone)


def test_tag_in_two_bundles_is_warned(caplog):
    raw = [
        {"name": "a", "layout": [{"id": 1, "size": 0.1}]},
        {"name": "b", "layout": [{"id": 1, "size": 0.1}, {"id": 2, "size": 0.1}]},
    ]
    with caplog.at_level(logging.WARNING, logger="tag_pipeline.registry"):
        bundles = parse_tag_bundles(raw)
    assert len(bundles) == 2
    assert any("member of both bundle 'a' and bundle 'b'" in r.getMessage() for r in caplog.records)

    registry = TagDescriptionRegistry({}, bundles)
    assert [b.name for b, _size, _T in registry.bundles_containing(1)] == ["a", "b"]
    assert [b.name for b, _size, _T in registry.bundles_containing(2)] == ["b"]
    assert registry.bundles_containing(3) == []


def test_from_config_missing_sections_warn(caplog):
    log = logging.getLogger("test.registry")
    with caplog.at_level(logging.WARNING, logger="test.registry"):
        registry = TagDescriptionRegistry.from_config(None, None, log)
    messages = [r.getMessage() for r in caplog.records]
    assert "No standalone tags specified" in messages
    assert "No tag bundles specified" in messages
    assert registry.standalone == {}
    assert registry.bundles == ()
    assert registry.errors == []


def test_from_config_bad_section_left_empty(caplog):
    log = logging.getLogger("test.registry")
    with caplog.at_level(logging.ERROR, logger="test.registry"):
        registry = TagDescriptionRegistry.from_config(
            [{"id": 1, "size": 0.1}],
            [{"name": "b", "layout": [{"id": 2}]}],
            log,
        )
    assert registry.lookup_standalone(1).size == 0.1
    assert registry.bundles == ()
    assert len(registry.errors) == 1
    assert registry.errors[0].section == "tag_bundles"
    assert any("Error loading tag bundle descriptions" in r.getMessage() for r in caplog.records)


def test_lookup_unknown_is_none():
    registry = TagDescriptionRegistry.from_config([{"id": 1, "size": 0.1}], [])
    assert registry.lookup_standalone(2) is None
    # returned mapping is a copy
    registry.standalone.clear()
    assert registry.lookup_standalone(1) is not None


def test_duplicate_bundle_name_rejected():
    raw = [
        {"name": "B", "layout": [{"id": 1, "size": 0.1}]},
        {"name": "B", "layout": [{"id": 2, "size": 0.1, "x": 0.3, "z": 0.4}]},
    ]
    with pytest.raises(ConfigurationError, match="duplicate bundle name 'B'"):
        parse_tag_bundles(raw)


def test_default_bundle_name_can_collide_with_explicit_one():
    raw = [
        {"name": "bundle_1", "layout": [{"id": 1, "size": 0.1}]},
        {"layout": [{"id": 2, "size": 0.1}]},
    ]
    with pytest.raises(ConfigurationError, match="duplicate bundle name"):
        parse_tag_bundles(raw)


def test_from_config_drops_bundles_with_duplicate_names():
    registry = TagDescriptionRegistry.from_config(
        [],
        [
            {"name": "B", "layout": [{"id": 1, "size": 0.1}]},
            {"name": "B", "layout": [{"id": 2, "size": 0.1}]},
        ],
    )
    assert registry.bundles == ()
    assert [e.section for e in registry.errors] == ["tag_bundles"]


def test_loaded_bundles_are_read_only():
    (bundle,) = parse_tag_bundles([{"name": "b", "layout": [{"id": 1, "size": 0.1, "x": 0.2}]}])
    registry = TagDescriptionRegistry({}, [bundle])
    (b,) = registry.bundles

    with pytest.raises(AttributeError):
        b.name = "other"
    with pytest.raises(AttributeError):
        b.members.append(b.members[0])
    with pytest.raises(TypeError):
        b.id2idx[5] = 0
    with pytest.raises(ValueError):
        b.member_transform(1)[0, 3] = 9.0
    assert np.allclose(b.member_transform(1)[:3, 3], [0.2, 0.0, 0.0])
