"""
Source templates for generated page files.

Pure string builders: every function maps its arguments to the exact
same text on every call. JSON values are rendered with two-space
indentation and non-ASCII characters kept as-is.
"""

from __future__ import annotations

import json
from typing import Any

DATA_IMPORT_PREFIX = "@/data"
PAGE_COMPONENT_IMPORT_PREFIX = "@/components/pageComponents"


def to_json(value: Any) -> str:
    """Stable JSON rendering used for every embedded value."""
    return json.dumps(value, indent=2, ensure_ascii=False)


def pascal_name(slug: str) -> str:
    """``contact-us`` → ``ContactUs``; ``our_team`` → ``OurTeam``."""
    words = slug.replace("_", "-").split("-")
    return "".join(w[:1].upper() + w[1:].lower() for w in words if w)


def page_component_name(slug: str) -> str:
    """``index`` → ``HomePage``; ``contact-us`` → ``ContactUsPage``; ``2024`` → ``Page2024``."""
    if slug == "index":
        return "HomePage"
    base = pascal_name(slug)
    # JS identifiers can't start with a digit
    if not base[:1].isalpha():
        return "Page" + base
    return base + "Page"


def props_var(index: int) -> str:
    """Export name of the Nth (0-based) component's props."""
    return f"component{index + 1}Props"


# ── Data file ───────────────────────────────────────────────────


def render_data_file(
    display_name: str,
    type_imports: list[tuple[str, str]],
    props_exports: list[tuple[str, str, dict[str, Any]]],
    manifest: list[dict[str, Any]],
) -> str:
    """``src/data/<slug>.data.ts``.

    Args:
        display_name: Page name for the header comment.
        type_imports: ``(props_type, import_path)`` pairs, already deduplicated.
        props_exports: ``(var_name, props_type, props)`` per component.
        manifest: Component metadata rows for the ``components`` array.
    """
    imports = "\n".join(f"import {{ {t} }} from '{path}';" for t, path in type_imports)
    exports = "\n\n".join(
        f"export const {var}: {props_type} = {to_json(props)};"
        for var, props_type, props in props_exports
    )
    body = f"{imports}\n\n{exports}\n\n" if props_exports else ""
    return f"""\
/**
 * Page Data for {display_name}
 *
 * Auto-generated from the website document.
 * DO NOT EDIT MANUALLY - This file is regenerated on each deployment
 */

{body}export const components = {to_json(manifest)};
"""


# ── Page component ──────────────────────────────────────────────


def render_page_component(
    slug: str,
    component_imports: list[tuple[str, str]],
    renders: list[tuple[str, str]],
) -> str:
    """``src/components/pageComponents/<slug>.tsx``.

    Args:
        slug: Page slug (names the data module and the component).
        component_imports: ``(component_name, import_path)`` pairs, deduplicated.
        renders: ``(component_name, props_var)`` in render order.
    """
    lines = ['"use client";', ""]
    lines.extend(f"import {name} from '{path}';" for name, path in component_imports)
    if renders:
        names = ", ".join(var for _, var in renders)
        lines.append(f"import {{ {names} }} from '{DATA_IMPORT_PREFIX}/{slug}.data';")
    jsx = "\n".join(f"      <{name} {{...{var}}} />" for name, var in renders)
    main = f"    <main>\n{jsx}\n    </main>" if renders else "    <main />"
    lines.extend([
        "",
        f"export default function {page_component_name(slug)}() {{",
        "  return (",
        main,
        "  );",
        "}",
        "",
    ])
    return "\n".join(lines)


# ── Route file ──────────────────────────────────────────────────


def route_path(slug: str) -> str:
    """``src/app/page.tsx`` for the index page, else ``src/app/<slug>/page.tsx``."""
    return "src/app/page.tsx" if slug == "index" else f"src/app/{slug}/page.tsx"


def render_route(slug: str, metadata: dict[str, Any]) -> str:
    """Next.js route file with the page's ``metadata`` export."""
    name = page_component_name(slug)
    return f"""\
import {{ Metadata }} from "next";
import {name} from "{PAGE_COMPONENT_IMPORT_PREFIX}/{slug}";

export const metadata: Metadata = {to_json(metadata)};

export default function Page() {{
  return <{name} />;
}}
"""
