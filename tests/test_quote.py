import shlex

import pytest

from yzx.output import ProcessOutput
from yzx.quote import Command, build, quote, template


@pytest.mark.parametrize(
    "value",
    [
        'bar"";baz!$#^$\'&*~*%)({}||\\/',
        "$(rm -rf /)",
        "`whoami`",
        "a;b",
        "a|b",
        "a&b",
        "~",
        "(sub)",
        "{a,b}",
        "*",
        "\\",
        "'",
        "foo bar",
        "tab\there",
        "new\nline",
    ],
)
def test_quote_yields_a_single_literal_word(value: str) -> None:
    quoted = quote(value)
    assert shlex.split(f"cmd {quoted} tail") == ["cmd", value, "tail"]


def test_safe_strings_pass_through() -> None:
    assert quote("hello") == "hello"
    assert quote("./index.mjs") == "./index.mjs"


def test_none_and_empty_string_become_empty_argument() -> None:
    assert quote(None) == "''"
    assert quote("") == "''"
    assert shlex.split(f"echo {quote(None)} {quote('')}") == ["echo", "", ""]


def test_sequences_expand_to_one_word_per_element() -> None:
    files = ["./index.mjs", "my file.txt", ""]
    quoted = quote(files)
    assert quoted == "./index.mjs 'my file.txt' ''"
    assert shlex.split(quoted) == files
    assert quote(("a", "b c")) == "a 'b c'"


def test_other_values_use_their_text() -> None:
    assert quote(0) == "0"
    assert quote(3.5) == "3.5"
    assert quote(b"x y") == "'x y'"

    class Named:
        def __str__(self) -> str:
            return "some name"

    assert quote(Named()) == "'some name'"


def test_process_output_quotes_as_trimmed_stdout() -> None:
    out = ProcessOutput(exit_code=0, signal=None, stdout="Hello world\n", stderr="")
    assert quote(out) == "'Hello world'"


def test_build_quotes_values_not_literals() -> None:
    cmd = build(["echo ", " | grep ", ""], ["a b", "$x"])
    assert cmd == "echo 'a b' | grep '$x'"
    assert build(["ls -la"], []) == "ls -la"


def test_build_is_deterministic() -> None:
    args = (["tar czf ", " ", ""], ["archive", ["x y", "z"]])
    assert build(*args) == build(*args) == "tar czf archive 'x y' z"


def test_build_rejects_mismatched_lengths() -> None:
    with pytest.raises(ValueError):
        build(["a", "b"], [])
    with pytest.raises(ValueError):
        Command(fragments=("a",), values=(1,))


def test_build_uses_custom_quoter() -> None:
    assert build(["echo ", ""], ["x"], quote=lambda v: f"<{v}>") == "echo <x>"


def test_template_splits_fields_and_literals() -> None:
    cmd = template("mkdir /tmp/{} && cd {dest}", "foo bar", dest="a;b")
    assert cmd.fragments == ("mkdir /tmp/", " && cd ", "")
    assert cmd.values == ("foo bar", "a;b")
    assert cmd.text == "mkdir /tmp/'foo bar' && cd 'a;b'"
    assert str(cmd) == cmd.text


def test_template_keeps_escaped_braces_literal() -> None:
    cmd = template("awk '{{print $1}}' {}", "in file")
    assert cmd.text == "awk '{print $1}' 'in file'"


def test_template_applies_format_spec_and_lookups() -> None:
    cmd = template("seq {0:03d} {cfg[end]}", 7, cfg={"end": "9"})
    assert cmd.text == "seq 007 9"


def test_template_rejects_mixed_numbering() -> None:
    with pytest.raises(ValueError):
        template("{0} {}", "a", "b")
    with pytest.raises(ValueError):
        template("{} {0}", "a")
