import io
import os

import pytest

from minishell.builtins import (
    ShellExit,
    builtin_cd,
    builtin_echo,
    builtin_env,
    builtin_exit,
    builtin_export,
    builtin_pwd,
    builtin_unset,
    export_name,
    is_builtin,
    run_builtin,
    sorted_declarations,
    valid_export_name,
)
from minishell.environment import Environment


def _run(args, env=None):
    out, err = io.StringIO(), io.StringIO()
    status = run_builtin(args, env if env is not None else Environment(), out, err)
    return status, out.getvalue(), err.getvalue()


@pytest.mark.parametrize("name", ["exit", "pwd", "cd", "export", "unset", "env", "echo"])
def test_is_builtin_true(name):
    assert is_builtin(name) is True


@pytest.mark.parametrize("name", ["ls", "exitx", "ech", "", None])
def test_is_builtin_false(name):
    assert is_builtin(name) is False


def test_echo_joins_arguments():
    out = io.StringIO()
    assert builtin_echo(["echo", "a", "b"], out) == 0
    assert out.getvalue() == "a b\n"


def test_echo_n_flag_drops_newline():
    out = io.StringIO()
    assert builtin_echo(["echo", "-nnn", "x"], out) == 0
    assert out.getvalue() == "x"


def test_echo_only_first_flag_consumed():
    out = io.StringIO()
    builtin_echo(["echo", "-n", "-n", "x"], out)
    assert out.getvalue() == "-n x"


def test_echo_non_flag_dash_word_is_printed():
    out = io.StringIO()
    builtin_echo(["echo", "-nx"], out)
    assert out.getvalue() == "-nx\n"


def test_echo_broken_pipe_returns_one():
    class Broken(io.StringIO):
        def write(self, s):
            raise BrokenPipeError

    assert builtin_echo(["echo", "a"], Broken()) == 1


def test_cd_changes_directory_and_updates_vars(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    target = tmp_path / "sub"
    target.mkdir()
    env = Environment({"PWD": str(tmp_path)})
    err = io.StringIO()
    assert builtin_cd(["cd", str(target)], env, err) == 0
    assert env.get("PWD") == os.getcwd()
    assert os.path.samefile(os.getcwd(), target)
    assert env.get("OLDPWD") == str(tmp_path)


def test_cd_dash_returns_to_oldpwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    env = Environment({"OLDPWD": str(tmp_path), "PWD": str(tmp_path)})
    assert builtin_cd(["cd", "-"], env, io.StringIO()) == 0
    assert os.path.samefile(os.getcwd(), tmp_path)


def test_cd_home_variants(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    home = tmp_path / "home"
    home.mkdir()
    for args in (["cd"], ["cd", "~"], ["cd", "--"]):
        monkeypatch.chdir(tmp_path)
        env = Environment({"HOME": str(home)})
        assert builtin_cd(args, env, io.StringIO()) == 0
        assert os.path.samefile(os.getcwd(), home)


def test_cd_without_home():
    err = io.StringIO()
    assert builtin_cd(["cd"], Environment(), err) == 1
    assert err.getvalue() == "minishell: cd: HOME not set\n"


def test_cd_too_many_arguments():
    err = io.StringIO()
    assert builtin_cd(["cd", "a", "b"], Environment(), err) == 1
    assert err.getvalue() == "minishell: cd: too many arguments\n"


def test_cd_missing_directory(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    err = io.StringIO()
    env = Environment()
    assert builtin_cd(["cd", str(tmp_path / "missing")], env, err) == 1
    assert err.getvalue().startswith("minishell: cd: ")
    assert "PWD" not in env


def test_pwd_prints_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    out = io.StringIO()
    assert builtin_pwd(Environment(), out, io.StringIO()) == 0
    assert out.getvalue() == f"{os.getcwd()}\n"


def test_env_prints_non_empty_values():
    env = Environment({"A": "1", "EMPTY": "", "B": "two"})
    out = io.StringIO()
    assert builtin_env(["env"], env, out, io.StringIO()) == 0
    assert out.getvalue().splitlines() == ["A=1", "B=two"]


def test_env_rejects_argument():
    err = io.StringIO()
    assert builtin_env(["env", "foo"], Environment(), io.StringIO(), err) == 1
    assert err.getvalue() == "env: ‘foo’: No such file or directory\n"


def test_export_sets_value():
    env = Environment()
    assert builtin_export(["export", "NAME=a=b"], env, io.StringIO()) == 0
    assert env.get("NAME") == "a=b"


def test_export_without_value_sets_empty():
    env = Environment({"X": "old"})
    assert builtin_export(["export", "X"], env, io.StringIO()) == 0
    assert env.get("X") == ""


@pytest.mark.parametrize("arg", ["=x", "1A=x", "A-B=x", "A B"])
def test_export_invalid_identifier(arg):
    env = Environment()
    out = io.StringIO()
    assert builtin_export(["export", arg], env, out) == 1
    assert out.getvalue() == f"export: `{arg}': not a valid identifier\n"
    assert len(env) == 0


def test_export_stops_at_first_error():
    env = Environment()
    builtin_export(["export", "A=1", "9=2", "B=3"], env, io.StringIO())
    assert env.get("A") == "1"
    assert "B" not in env


def test_export_lists_sorted_declarations():
    env = Environment({"B": "2", "A": "1"})
    out = io.StringIO()
    assert builtin_export(["export"], env, out) == 0
    assert out.getvalue().splitlines() == sorted_declarations(env)
    assert out.getvalue().startswith("declare -x A='1'")


def test_sorted_declarations_is_ordered_and_complete():
    env = Environment({"ZED": "z", "PATH": "/bin", "HOME": "/h", "ALPHA": ""})
    lines = sorted_declarations(env)
    names = [line[len("declare -x "):].split("=")[0] for line in lines]
    assert names == sorted(env)
    assert all(line.startswith("declare -x ") for line in lines)


def test_export_name():
    assert export_name("KEY=value=more") == "KEY"
    assert export_name("KEY") == "KEY"


def test_valid_export_name():
    assert valid_export_name("HOME_DIR") is True
    assert valid_export_name("2X") is False
    assert valid_export_name("A.B") is True
    assert valid_export_name("A$B") is False


def test_unset_removes_variables():
    env = Environment({"A": "1", "B": "2", "C": "3"})
    assert builtin_unset(["unset", "A", "C", "MISSING"], env) == 0
    assert env.items() == [("B", "2")]


def test_exit_without_arguments():
    out = io.StringIO()
    with pytest.raises(ShellExit) as info:
        builtin_exit(["exit"], out, io.StringIO())
    assert info.value.code == 0
    assert out.getvalue() == "exit\n"


@pytest.mark.parametrize("arg, code", [("42", 42), ("+7", 7), ("256", 0), ("-", 0)])
def test_exit_with_code(arg, code):
    with pytest.raises(ShellExit) as info:
        builtin_exit(["exit", arg], io.StringIO(), io.StringIO())
    assert info.value.code == code


def test_exit_wraps_negative_code():
    with pytest.raises(ShellExit) as info:
        builtin_exit(["exit", "-1"], io.StringIO(), io.StringIO())
    assert info.value.code == 255


def test_exit_non_numeric():
    err = io.StringIO()
    with pytest.raises(ShellExit) as info:
        builtin_exit(["exit", "abc"], io.StringIO(), err)
    assert info.value.code == 2
    assert err.getvalue() == "exit: numeric argument required\n"


def test_exit_too_many_arguments():
    err = io.StringIO()
    assert builtin_exit(["exit", "1", "2"], io.StringIO(), err) == 1
    assert err.getvalue() == "exit: too many arguments\n"


def test_run_builtin_dispatches_echo():
    status, out, err = _run(["echo", "hi"])
    assert (status, out, err) == (0, "hi\n", "")


def test_run_builtin_dispatches_unset():
    env = Environment({"A": "1"})
    status, _, _ = _run(["unset", "A"], env)
    assert status == 0
    assert "A" not in env


def test_run_builtin_unknown_name():
    assert _run(["ls"])[0] == 1
    assert _run([])[0] == 1


def test_run_builtin_exit_raises():
    with pytest.raises(ShellExit):
        _run(["exit"])