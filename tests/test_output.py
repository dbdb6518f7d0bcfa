import dataclasses

import pytest

from yzx.errors import YzxError
from yzx.output import ProcessError, ProcessOutput, exit_code_info


def test_coercion_uses_trimmed_stdout() -> None:
    out = ProcessOutput(exit_code=0, signal=None, stdout=" 42\n", stderr="")
    assert str(out) == " 42"
    assert int(out) == 42
    assert float(out) == 42.0
    assert out.ok


def test_coercion_strips_only_one_terminator() -> None:
    out = ProcessOutput(exit_code=0, signal=None, stdout="a\n\n", stderr="")
    assert str(out) == "a\n"
    crlf = ProcessOutput(exit_code=0, signal=None, stdout="b\r\n", stderr="")
    assert str(crlf) == "b"


def test_output_is_immutable() -> None:
    out = ProcessOutput(exit_code=1, signal=None, stdout="", stderr="")
    with pytest.raises(dataclasses.FrozenInstanceError):
        out.exit_code = 0  # type: ignore[misc]


def test_exit_code_info() -> None:
    assert exit_code_info(127) == "Command not found"
    assert exit_code_info(130) == "Terminated by SIGINT"
    assert exit_code_info(0) is None
    assert exit_code_info(None) is None


def test_process_error_carries_output_fields() -> None:
    out = ProcessOutput(
        exit_code=127,
        signal=None,
        stdout="",
        stderr="bash: wtf: command not found\n",
        combined="bash: wtf: command not found\n",
    )
    err = ProcessError(out, command="wtf")
    assert isinstance(err, YzxError)
    assert err.output is out
    assert err.exit_code == 127
    assert err.signal is None
    assert err.stderr == out.stderr
    assert err.combined == out.combined
    assert str(err) == (
        "exit code: 127 (Command not found)\ncommand: wtf\nbash: wtf: command not found"
    )


def test_process_error_for_signal() -> None:
    out = ProcessOutput(exit_code=None, signal="SIGTERM", stdout="", stderr="")
    err = ProcessError(out)
    assert not out.ok
    assert str(err) == "process terminated by SIGTERM"
