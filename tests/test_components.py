from __future__ import annotations

import types

import pytest

from mdxc import ComponentRegistry, MdxResolutionError, extend


def test_intrinsic_names_resolve_to_themselves() -> None:
    reg = ComponentRegistry.root()
    assert reg.resolve("h1") == "h1"
    assert reg.resolve("my-widget") == "my-widget"


def test_missing_capitalized_name_raises() -> None:
    with pytest.raises(MdxResolutionError, match="`Note`"):
        ComponentRegistry.root().resolve("Note")


def test_passthrough_policy_renders_the_name() -> None:
    reg = ComponentRegistry.root("passthrough")
    assert reg.resolve("Note") == "Note"
    assert reg.extend({"h1": "h2"}).policy == "passthrough"


def test_unknown_policy_is_rejected() -> None:
    with pytest.raises(ValueError, match="policy"):
        ComponentRegistry(policy="ignore")  # type: ignore[arg-type]


def test_extend_never_modifies_the_parent() -> None:
    base = ComponentRegistry({"h1": "h2"})
    child = base.extend({"h1": "h3", "p": "div"})
    assert base.resolve("h1") == "h2"
    assert base.resolve("p") == "p"
    assert child.resolve("h1") == "h3"
    assert child.parent is base
    assert (base.depth, child.depth) == (0, 1)


def test_inner_scope_inherits_unset_names() -> None:
    base = ComponentRegistry({"h1": "h2", "em": "i"})
    child = base.extend({"em": "b"})
    assert child.resolve_all(["h1", "em"]) == {"h1": "h2", "em": "b"}
    assert child.effective() == {"h1": "h2", "em": "b"}
    assert dict(child.entries) == {"em": "b"}


def test_none_values_are_ignored() -> None:
    reg = ComponentRegistry({"h1": "h2"}).extend({"h1": None})
    assert reg.resolve("h1") == "h2"
    assert "h1" in reg
    assert "h6" not in reg


def test_member_names_walk_mappings_and_attributes() -> None:
    ui = types.SimpleNamespace(forms={"Input": "input-impl"})
    reg = ComponentRegistry({"ui": ui})
    assert reg.resolve("ui.forms.Input") == "input-impl"
    with pytest.raises(MdxResolutionError, match="`ui.forms.Select`"):
        reg.resolve("ui.forms.Select")
    with pytest.raises(MdxResolutionError, match="`other.Thing`"):
        reg.resolve("other.Thing")


def test_explicit_dotted_entry_wins() -> None:
    reg = ComponentRegistry({"ui.Card": "card"})
    assert reg.resolve("ui.Card") == "card"


def test_empty_delta_inherits_everything() -> None:
    base = ComponentRegistry({"h1": "h2"})
    child = base.extend({})
    assert child.resolve("h1") == "h2"
    assert child.parent is base
    assert child.effective() == {"h1": "h2"}
    assert extend(base, {}).resolve("h1") == "h2"


def test_module_level_extend() -> None:
    reg = extend(None, {"Note": "aside"})
    assert reg.resolve("Note") == "aside"
    assert reg.depth == 1
    assert extend(reg, None).resolve("Note") == "aside"


def test_entries_are_validated() -> None:
    with pytest.raises(TypeError, match="mapping"):
        ComponentRegistry([("h1", "h2")])  # type: ignore[arg-type]
    with pytest.raises(TypeError, match="strings"):
        ComponentRegistry({1: "h2"})  # type: ignore[dict-item]


def test_entries_are_read_only() -> None:
    reg = ComponentRegistry({"h1": "h2"})
    with pytest.raises(TypeError):
        reg.entries["h1"] = "h3"  # type: ignore[index]


def test_repr_lists_names() -> None:
    reg = ComponentRegistry({"b": 1, "a": 2})
    assert repr(reg) == "ComponentRegistry(depth=0, policy='error', names=['a', 'b'])"
