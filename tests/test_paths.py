from __future__ import annotations

from pathlib import Path

from mdxc.paths import generated_relpath_to_module, source_to_generated_relpath, to_identifier


def test_top_level_document_paths() -> None:
    rel = source_to_generated_relpath(Path("intro.mdx"))
    assert rel == Path("__generated__") / "intro.py"
    assert generated_relpath_to_module(rel) == "__generated__.intro"


def test_nested_document_paths() -> None:
    rel = source_to_generated_relpath(Path("guide") / "getting-started.mdx", "__gen__")
    assert rel == Path("__gen__") / "guide" / "getting_started.py"
    assert generated_relpath_to_module(rel) == "__gen__.guide.getting_started"


def test_names_are_made_importable() -> None:
    assert to_identifier("2024-notes") == "_2024_notes"
    assert to_identifier("class") == "_class"
    assert to_identifier("") == "_"
    assert generated_relpath_to_module(Path("__generated__") / "__init__.py") == "__generated__"
