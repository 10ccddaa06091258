"""
Tests for project source collection and generated-file writing.
"""

from pathlib import Path

import pytest

from siteforge.core.models.template import GeneratedFile
from siteforge.core.services.design_registry import ComponentDesign, DesignRegistry
from siteforge.core.services.source_collect import (
    collect_project_files,
    merge_sources,
    split_unused_designs,
    strip_editor_exports,
    write_generated_files,
)


def _write(root: Path, rel: str, content: str = "x") -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture
def checkout(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    _write(root, "package.json", "{}")
    _write(root, "src/app/layout.tsx", "export default function Layout() {}")
    _write(root, "src/components/designs/hero/hero.tsx", "editor build")
    _write(root, "src/components/designs/hero/hero.prod.tsx", "production build")
    _write(root, "src/components/designs/hero/heroEdit.tsx", "edit")
    _write(root, "src/components/designs/hero/index.ts", (
        "import Hero from './hero';\n"
        "import HeroEdit from './heroEdit';\n"
        "export { Hero, HeroEdit };\n"
        "export default Hero;\n"
    ))
    _write(root, "node_modules/react/index.js")
    _write(root, ".git/HEAD")
    (root / "public").mkdir()
    (root / "public" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe")
    return root


class TestCollect:
    def test_collects_sorted_text_files(self, checkout):
        paths = [f.path for f in collect_project_files(checkout)]
        assert paths == sorted(paths)
        assert "package.json" in paths
        assert not any(p.startswith(("node_modules/", ".git/")) for p in paths)
        assert "public/logo.png" not in paths

    def test_production_variant_replaces(self, checkout):
        files = {f.path: f for f in collect_project_files(checkout)}
        hero = files["src/components/designs/hero/hero.tsx"]
        assert hero.content == "production build"
        assert hero.reason.startswith("production variant")
        assert "src/components/designs/hero/hero.prod.tsx" not in files

    def test_design_index_cleaned(self, checkout):
        files = {f.path: f for f in collect_project_files(checkout)}
        assert files["src/components/designs/hero/index.ts"].content == (
            "import Hero from './hero';\n"
            "export { Hero };\n"
            "export default Hero;\n"
        )

    def test_prefix(self, checkout):
        paths = [f.path for f in collect_project_files(checkout, prefix="/frontend/")]
        assert all(p.startswith("frontend/") for p in paths)

    def test_missing_root(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            collect_project_files(tmp_path / "nope")


class TestStripEditorExports:
    def test_export_only_line_removed(self):
        content = "export { HeroEdit };\nexport { Hero };\n"
        assert strip_editor_exports(content) == "export { Hero };\n"

    def test_untouched_without_edit(self):
        content = "import Hero from './hero';\nexport default Hero;\n"
        assert strip_editor_exports(content) == content


class TestMergeSources:
    def test_generated_wins(self):
        generated = [GeneratedFile(path="src/app/page.tsx", content="new")]
        collected = [
            GeneratedFile(path="package.json", content="{}"),
            GeneratedFile(path="src/app/page.tsx", content="old"),
        ]
        merged = merge_sources(generated, collected)
        assert [(f.path, f.content) for f in merged] == [
            ("src/app/page.tsx", "new"),
            ("package.json", "{}"),
        ]


class TestWriteGeneratedFiles:
    def test_writes_nested(self, tmp_path):
        written = write_generated_files(tmp_path, [
            GeneratedFile(path="src/data/index.data.ts", content="data"),
            GeneratedFile(path="src/app/page.tsx", content="page"),
        ])
        assert len(written) == 2
        assert (tmp_path / "src/data/index.data.ts").read_text() == "data"

    def test_no_overwrite(self, tmp_path):
        _write(tmp_path, "src/app/page.tsx", "keep")
        written = write_generated_files(
            tmp_path, [GeneratedFile(path="src/app/page.tsx", content="new")], overwrite=False,
        )
        assert written == []
        assert (tmp_path / "src/app/page.tsx").read_text() == "keep"

    def test_refuses_escape(self, tmp_path):
        with pytest.raises(ValueError, match="outside"):
            write_generated_files(tmp_path / "out", [GeneratedFile(path="../evil.ts", content="")])


class TestUnusedDesigns:
    @pytest.fixture
    def registry(self) -> DesignRegistry:
        return DesignRegistry([
            ComponentDesign.model_validate({
                "type": t,
                "component_name": t.title(),
                "props_type": f"{t.title()}Props",
                "import_path": f"@/components/designs/{t}/{t}",
                "category": t,
            })
            for t in ("hero", "footer")
        ])

    def test_unused_folder_split_off(self, registry):
        files = [
            GeneratedFile(path="src/components/designs/hero/hero.tsx", content="h"),
            GeneratedFile(path="src/components/designs/footer/footer.tsx", content="f"),
            GeneratedFile(path="src/components/designs/footer/index.ts", content="i"),
            GeneratedFile(path="src/components/designs/banner/banner.tsx", content="b"),
            GeneratedFile(path="package.json", content="{}"),
        ]
        kept, unused = split_unused_designs(files, ["hero"], registry)
        assert [f.path for f in kept] == [
            "src/components/designs/hero/hero.tsx",
            "src/components/designs/banner/banner.tsx",
            "package.json",
        ]
        assert [f.path for f in unused] == [
            "src/components/designs/footer/footer.tsx",
            "src/components/designs/footer/index.ts",
        ]

    def test_all_used(self, registry):
        files = [GeneratedFile(path="src/components/designs/footer/footer.tsx", content="f")]
        kept, unused = split_unused_designs(files, ["hero", "footer"], registry)
        assert kept == files
        assert unused == []
