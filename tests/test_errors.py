import pytest

from mdxc.errors import (
    MdxConfigError,
    MdxError,
    MdxEvaluationError,
    MdxResolutionError,
    MdxSyntaxError,
)


def test_all_errors_are_subclasses_of_mdx_error() -> None:
    assert issubclass(MdxConfigError, MdxError)
    assert issubclass(MdxSyntaxError, MdxError)
    assert issubclass(MdxEvaluationError, MdxError)
    assert issubclass(MdxResolutionError, MdxError)


def test_error_message_is_preserved() -> None:
    msg = "boom"
    err = MdxConfigError(msg)
    assert str(err) == msg


def test_syntax_error_carries_position() -> None:
    err = MdxSyntaxError("bad", line=3, column=4)
    assert str(err) == "3:4: bad"
    assert err.file_name is None
    named = MdxSyntaxError("bad", line=3, column=4, file_name="a.mdx")
    assert str(named) == "a.mdx:3:4: bad"


def test_can_catch_any_mdx_error() -> None:
    def raise_one() -> None:
        raise MdxEvaluationError("nope")

    with pytest.raises(MdxError):
        raise_one()
