"""Static tag and tag-bundle descriptions.

Loaded once from configuration and read-only afterwards, so one registry can
be shared by every pipeline instance.
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import Any, Optional

import numpy as np

from .errors import ConfigurationError
from .tag_types import BundleMember, StandaloneTagDescription, TagBundleDescription
from .transforms import make_transform, quaternion_to_matrix

_logger = logging.getLogger("tag_pipeline.registry")

STANDALONE_SECTION = "standalone_tags"
BUNDLES_SECTION = "tag_bundles"


def _require_int(entry: dict, key: str, section: str) -> int:
    if key not in entry:
        raise ConfigurationError(section, f"missing required field '{key}' in {entry!r}")
    value = entry[key]
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(section, f"field '{key}' must be an integer, got {value!r}")
    return int(value)


def _require_size(entry: dict, section: str) -> float:
    if "size" not in entry:
        raise ConfigurationError(section, f"missing required field 'size' in {entry!r}")
    value = entry["size"]
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigurationError(section, f"field 'size' must be a number, got {value!r}")
    size = float(value)
    if not math.isfinite(size) or size <= 0:
        raise ConfigurationError(section, f"tag size must be positive, got {value!r}")
    return size


def _optional_float(entry: dict, key: str, default: float, section: str) -> float:
    value = entry.get(key, default)
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigurationError(section, f"field '{key}' must be a number, got {value!r}")
    return float(value)


def _optional_name(entry: dict, default: str, section: str) -> str:
    name = entry.get("name", default)
    if not isinstance(name, str):
        raise ConfigurationError(section, f"field 'name' must be a string, got {name!r}")
    return name


def parse_standalone_tags(raw: Any) -> dict[int, StandaloneTagDescription]:
    """Parse ``[{id, size, name?}, ...]`` into descriptions keyed by id."""
    if not isinstance(raw, (list, tuple)):
        raise ConfigurationError(STANDALONE_SECTION, "expected a list of tag descriptions")

    descriptions: dict[int, StandaloneTagDescription] = {}
    for entry in raw:
        if not isinstance(entry, dict):
            raise ConfigurationError(STANDALONE_SECTION, f"tag description must be a mapping, got {entry!r}")
        tag_id = _require_int(entry, "id", STANDALONE_SECTION)
        size = _require_size(entry, STANDALONE_SECTION)
        frame_name = _optional_name(entry, f"tag_{tag_id}", STANDALONE_SECTION)
        if tag_id in descriptions:
            raise ConfigurationError(STANDALONE_SECTION, f"duplicate standalone tag id {tag_id}")
        descriptions[tag_id] = StandaloneTagDescription(tag_id, size, frame_name)
    return descriptions


def parse_tag_bundles(
    raw: Any,
    standalone: Optional[dict[int, StandaloneTagDescription]] = None,
) -> list[TagBundleDescription]:
    """Parse ``[{name?, layout: [{id, size, x, y, z, qw, qx, qy, qz}, ...]}, ...]``.

    Member sizes are cross-checked against ``standalone``: a tag declared both
    ways must have the same size in both places.
    """
    standalone = standalone or {}
    if not isinstance(raw, (list, tuple)):
        raise ConfigurationError(BUNDLES_SECTION, "expected a list of bundle descriptions")

    bundles: list[TagBundleDescription] = []
    names: set[str] = set()
    for i, bundle_raw in enumerate(raw):
        if not isinstance(bundle_raw, dict):
            raise ConfigurationError(BUNDLES_SECTION, f"bundle description must be a mapping, got {bundle_raw!r}")
        name = _optional_name(bundle_raw, f"bundle_{i}", BUNDLES_SECTION)
        if name in names:
            raise ConfigurationError(BUNDLES_SECTION, f"duplicate bundle name '{name}'")
        names.add(name)
        _logger.info("Loading tag bundle '%s'", name)

        layout = bundle_raw.get("layout")
        if not isinstance(layout, (list, tuple)) or not layout:
            raise ConfigurationError(BUNDLES_SECTION, f"bundle '{name}' needs a non-empty 'layout' list")

        members: list[BundleMember] = []
        member_ids: set[int] = set()
        for j, tag in enumerate(layout):
            if not isinstance(tag, dict):
                raise ConfigurationError(BUNDLES_SECTION, f"layout entry must be a mapping, got {tag!r}")
            tag_id = _require_int(tag, "id", BUNDLES_SECTION)
            size = _require_size(tag, BUNDLES_SECTION)
            if tag_id in member_ids:
                raise ConfigurationError(BUNDLES_SECTION, f"tag id {tag_id} listed twice in bundle '{name}'")

            desc = standalone.get(tag_id)
            if desc is not None and not math.isclose(desc.size, size, rel_tol=1e-9, abs_tol=0.0):
                raise ConfigurationError(
                    BUNDLES_SECTION,
                    f"tag id {tag_id} has size {size} in bundle '{name}' "
                    f"but size {desc.size} as a standalone tag",
                )

            x = _optional_float(tag, "x", 0.0, BUNDLES_SECTION)
            y = _optional_float(tag, "y", 0.0, BUNDLES_SECTION)
            z = _optional_float(tag, "z", 0.0, BUNDLES_SECTION)
            qw = _optional_float(tag, "qw", 1.0, BUNDLES_SECTION)
            qx = _optional_float(tag, "qx", 0.0, BUNDLES_SECTION)
            qy = _optional_float(tag, "qy", 0.0, BUNDLES_SECTION)
            qz = _optional_float(tag, "qz", 0.0, BUNDLES_SECTION)
            try:
                R_oi = quaternion_to_matrix(qw, qx, qy, qz)
            except ValueError as exc:
                raise ConfigurationError(BUNDLES_SECTION, f"tag id {tag_id}: {exc}") from exc

            T_oi = make_transform(R_oi, (x, y, z))
            T_oi.flags.writeable = False
            members.append(BundleMember(tag_id, size, T_oi))
            member_ids.add(tag_id)
            _logger.info(
                " %d) id: %d, size: %s, p = [%s,%s,%s], q = [%s,%s,%s,%s]",
                j, tag_id, size, x, y, z, qw, qx, qy, qz,
            )
        bundles.append(TagBundleDescription(name, tuple(members)))

    seen: dict[int, str] = {}
    for bundle in bundles:
        for tag_id in bundle.bundle_ids:
            if tag_id in seen:
                _logger.warning(
                    "Tag id %d is a member of both bundle '%s' and bundle '%s'; "
                    "its corners will be used for both poses",
                    tag_id, seen[tag_id], bundle.name,
                )
            else:
                seen[tag_id] = bundle.name
    return bundles


class TagDescriptionRegistry:
    def __init__(
        self,
        standalone: Optional[dict[int, StandaloneTagDescription]] = None,
        bundles: Optional[list[TagBundleDescription]] = None,
        errors: Optional[list[ConfigurationError]] = None,
    ):
        self._standalone = dict(standalone or {})
        self._bundles = tuple(bundles or ())
        self.errors = list(errors or [])

    @classmethod
    def from_config(
        cls,
        standalone_raw: Any = None,
        bundles_raw: Any = None,
        logger: Optional[logging.Logger] = None,
    ) -> "TagDescriptionRegistry":
        """Build a registry; a bad section is reported and left empty."""
        log = logger or _logger
        errors: list[ConfigurationError] = []

        standalone: dict[int, StandaloneTagDescription] = {}
        if standalone_raw is None:
            log.warning("No standalone tags specified")
        else:
            try:
                standalone = parse_standalone_tags(standalone_raw)
            except ConfigurationError as exc:
                log.error("Error loading standalone tag descriptions: %s", exc)
                errors.append(exc)

        bundles: list[TagBundleDescription] = []
        if bundles_raw is None:
            log.warning("No tag bundles specified")
        else:
            try:
                bundles = parse_tag_bundles(bundles_raw, standalone)
            except ConfigurationError as exc:
                log.error("Error loading tag bundle descriptions: %s", exc)
                errors.append(exc)

        return cls(standalone, bundles, errors)

    @property
    def standalone(self) -> dict[int, StandaloneTagDescription]:
        return dict(self._standalone)

    @property
    def bundles(self) -> tuple[TagBundleDescription, ...]:
        return self._bundles

    def lookup_standalone(self, tag_id: int) -> Optional[StandaloneTagDescription]:
        return self._standalone.get(tag_id)

    def bundles_containing(self, tag_id: int) -> list[tuple[TagBundleDescription, float, np.ndarray]]:
        return [
            (bundle, bundle.member_size(tag_id), bundle.member_transform(tag_id))
            for bundle in self._bundles
            if bundle.has_member(tag_id)
        ]
