"""
Design registry — the closed set of component designs a page may use.

Each design maps a component ``type`` (as stored in the website document)
to the production component it renders, the TypeScript props type the
generated data file is annotated with, its editable fields and the
default props that fill in whatever the editor left out.

Editable fields use dotted keys (``images.main``) for nested props.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from siteforge.core.data import DataRegistry

logger = logging.getLogger(__name__)

GRADIENT_TYPES = frozenset({"solid", "linear", "radial"})


class FieldKind(StrEnum):
    TEXT = "text"
    COLOR = "color"
    IMAGE = "image"
    GRADIENT = "gradient"
    STANDARD_ARRAY = "standardArray"
    TESTIMONIAL_ARRAY = "testimonialArray"
    CAROUSEL = "carousel"


class EditableField(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str = ""
    kind: FieldKind


class ComponentDesign(BaseModel):
    """One registered design."""

    model_config = ConfigDict(frozen=True)

    type: str
    component_name: str
    props_type: str
    import_path: str
    category: str = ""
    editable_fields: tuple[EditableField, ...] = ()
    defaults: dict[str, Any] = Field(default_factory=dict)

    def field_for(self, key: str) -> EditableField | None:
        for f in self.editable_fields:
            if f.key == key:
                return f
        return None

    @property
    def dotted_keys(self) -> frozenset[str]:
        return frozenset(f.key for f in self.editable_fields if "." in f.key)

    @property
    def source_dir(self) -> str:
        """Project folder holding the design, e.g. ``src/components/designs/misc/contactCloser/``."""
        path = self.import_path
        if path.startswith("@/"):
            path = "src/" + path[2:]
        return path.rsplit("/", 1)[0] + "/"


# ── Shape checks ────────────────────────────────────────────────


def _is_text(value: Any) -> bool:
    return isinstance(value, str) or (
        isinstance(value, int | float) and not isinstance(value, bool)
    )


def _is_image(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, Mapping) and isinstance(value.get("src"), str)


def _is_gradient(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, Mapping) and value.get("type") in GRADIENT_TYPES


def _is_mapping_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, Mapping) for item in value)


def _is_testimonial_list(value: Any) -> bool:
    return _is_mapping_list(value) and all(
        isinstance(item.get("quote"), str) for item in value
    )


_SHAPE_CHECKS = {
    FieldKind.TEXT: (_is_text, "a string"),
    FieldKind.COLOR: (lambda v: isinstance(v, str), "a color string"),
    FieldKind.IMAGE: (_is_image, "an image URL or a mapping with a string 'src'"),
    FieldKind.GRADIENT: (
        _is_gradient,
        "a color string or a mapping with type solid, linear or radial",
    ),
    FieldKind.STANDARD_ARRAY: (_is_mapping_list, "a list of mappings"),
    FieldKind.TESTIMONIAL_ARRAY: (
        _is_testimonial_list,
        "a list of mappings each with a string 'quote'",
    ),
    FieldKind.CAROUSEL: (_is_mapping_list, "a list of mappings"),
}

_MISSING = object()


def _lookup(props: Mapping[str, Any], key: str) -> Any:
    """Value at a dotted key: nested structure first, then the flat key."""
    if "." in key:
        node: Any = props
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                node = _MISSING
                break
            node = node[part]
        if node is not _MISSING:
            return node
    return props.get(key, _MISSING)


def _has_nested(props: Mapping[str, Any], key: str) -> bool:
    head, _, rest = key.partition(".")
    node = props.get(head)
    for part in rest.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return False
        node = node[part]
    return True


def _drop_none(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``override`` onto ``base``: mappings merge, everything else replaces.

    Keys keep ``override``'s order, followed by keys only ``base`` has.
    """
    merged: dict[str, Any] = {}
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), Mapping):
            merged[key] = deep_merge(base[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    for key, value in base.items():
        if key not in merged:
            merged[key] = copy.deepcopy(value)
    return merged


# ── Registry ────────────────────────────────────────────────────


class DesignRegistry:
    """Lookup and prop handling for a fixed set of designs."""

    def __init__(self, designs: Iterable[ComponentDesign]):
        self._designs: dict[str, ComponentDesign] = {}
        for design in designs:
            if design.type in self._designs:
                raise ValueError(f"Duplicate design type: {design.type!r}")
            self._designs[design.type] = design

    @classmethod
    def from_catalog(cls, data: DataRegistry | None = None) -> DesignRegistry:
        data = data or DataRegistry()
        registry = cls(ComponentDesign.model_validate(d) for d in data.designs)
        logger.debug("Design registry ready with %d designs", len(registry))
        return registry

    def __len__(self) -> int:
        return len(self._designs)

    def __contains__(self, design_type: object) -> bool:
        return design_type in self._designs

    def get(self, design_type: str) -> ComponentDesign | None:
        return self._designs.get(design_type)

    def require(self, design_type: str) -> ComponentDesign:
        """Like ``get`` but raises ``KeyError`` for unregistered types."""
        design = self._designs.get(design_type)
        if design is None:
            raise KeyError(design_type)
        return design

    def types(self) -> list[str]:
        return list(self._designs)

    def by_category(self, category: str) -> list[ComponentDesign]:
        return [d for d in self._designs.values() if d.category == category]

    def defaults_for(self, design_type: str) -> dict[str, Any]:
        """A fresh deep copy of the design's default props."""
        return copy.deepcopy(self.require(design_type).defaults)

    def validate_props(self, design_type: str, props: Mapping[str, Any]) -> list[str]:
        """Shape problems in the declared fields of ``props``.

        Absent and ``None`` fields are not problems: defaults fill them.
        Keys the design doesn't declare are never checked.
        """
        design = self.require(design_type)
        problems: list[str] = []
        for f in design.editable_fields:
            value = _lookup(props, f.key)
            if value is _MISSING or value is None:
                continue
            check, expected = _SHAPE_CHECKS[f.kind]
            if not check(value):
                problems.append(
                    f"{f.key}: expected {expected}, got {type(value).__name__}"
                )
        return problems

    def normalize_props(self, design_type: str, props: Mapping[str, Any]) -> dict[str, Any]:
        """Fold flat dotted keys into nested structure and drop ``None`` values.

        When both ``images.main`` and ``images: {main: ...}`` are present the
        nested value wins. Only declared dotted keys are expanded; unknown
        dotted keys pass through verbatim.
        """
        declared = self.require(design_type).dotted_keys
        cleaned: dict[str, Any] = {}
        for key, value in props.items():
            if value is None:
                continue
            if "." in key and _has_nested(props, key):
                continue
            if key in declared:
                head, *rest = key.split(".")
                node = cleaned.setdefault(head, {})
                if not isinstance(node, dict):
                    node = cleaned[head] = {}
                for part in rest[:-1]:
                    node = node.setdefault(part, {})
                node.setdefault(rest[-1], _drop_none(value))
                continue
            if key in cleaned and isinstance(cleaned[key], dict) and isinstance(value, Mapping):
                cleaned[key] = deep_merge(cleaned[key], _drop_none(value))
            else:
                cleaned[key] = _drop_none(value)
        return cleaned

    def merge_defaults(self, design_type: str, props: Mapping[str, Any]) -> dict[str, Any]:
        """Fill missing props from the design's defaults (props win)."""
        return deep_merge(self.require(design_type).defaults, props)

    def resolve_props(self, design_type: str, props: Mapping[str, Any]) -> dict[str, Any]:
        """Normalized props with defaults applied, as rendered into data files."""
        return self.merge_defaults(design_type, self.normalize_props(design_type, props))


@lru_cache(maxsize=1)
def default_registry() -> DesignRegistry:
    """Process-wide registry built from the packaged design catalog."""
    return DesignRegistry.from_catalog()
