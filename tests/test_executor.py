"""Integration tests for the process orchestrator (spawns real processes)."""

import errno
import os
import subprocess

import psutil
import pytest

from mysh import config
from mysh.errors import OrchestrationError
from mysh.executor import (
    ProcessHandle,
    SpawnFailure,
    execute_pipeline,
    exit_status,
    spawn,
    start_pipeline,
)
from mysh.parser import parse_line
from mysh.process import zombie_children


def run(line, cwd=None):
    return execute_pipeline(parse_line(line), cwd=cwd)


def test_empty_pipeline_is_a_no_op(forbid_spawn):
    assert run("") == 0
    assert forbid_spawn == []


def test_single_stage_writes_to_own_stdout(capfd):
    assert run("echo hello") == 0
    assert capfd.readouterr().out == "hello\n"


def test_two_stage_pipeline(capfd):
    assert run("echo hello | tr a-z A-Z") == 0
    assert capfd.readouterr().out == "HELLO\n"


def test_three_stage_pipeline(capfd):
    assert run(r"printf c\nb\na\n | sort | head -n 2") == 0
    assert capfd.readouterr().out == "a\nb\n"


def test_bytes_pass_through_unchanged_and_in_order(tmp_path):
    """A payload larger than any pipe buffer crosses every stage intact."""
    payload = os.urandom(1 << 20)
    (tmp_path / "in.bin").write_bytes(payload)

    assert run("cat in.bin | cat | cat > out.bin", cwd=str(tmp_path)) == 0
    assert (tmp_path / "out.bin").read_bytes() == payload


def test_truncate_then_append(tmp_path, capfd):
    cwd = str(tmp_path)
    assert run("printf foo > out.txt", cwd) == 0
    assert run("cat out.txt", cwd) == 0
    assert capfd.readouterr().out == "foo"

    assert run("printf bar >> out.txt", cwd) == 0
    assert run("cat out.txt", cwd) == 0
    assert capfd.readouterr().out == "foobar"

    assert run("printf baz > out.txt", cwd) == 0
    assert (tmp_path / "out.txt").read_text() == "baz"


def test_created_file_mode(tmp_path):
    old = os.umask(0)
    try:
        run("printf x > new.txt", str(tmp_path))
    finally:
        os.umask(old)
    assert (tmp_path / "new.txt").stat().st_mode & 0o777 == config.REDIRECT_FILE_MODE


def test_input_redirect(tmp_path, capfd):
    (tmp_path / "in.txt").write_text("shout\n")
    assert run("tr a-z A-Z < in.txt | cat", str(tmp_path)) == 0
    assert capfd.readouterr().out == "SHOUT\n"


def test_relative_paths_use_given_cwd(tmp_path, capfd):
    (tmp_path / "marker.txt").write_text("")
    assert run("ls", str(tmp_path)) == 0
    assert "marker.txt" in capfd.readouterr().out


def test_status_is_last_stage():
    assert run("false | true") == 0
    assert run("true | false") == 1


def test_command_not_found(capfd):
    assert run("no-such-command-mysh") == config.EXIT_NOT_FOUND
    assert "mysh: no-such-command-mysh: command not found" in capfd.readouterr().err


def test_siblings_run_when_one_stage_cannot_start(capfd):
    assert run("no-such-command-mysh | echo still-here") == 0
    out, err = capfd.readouterr()
    assert out == "still-here\n"
    assert "command not found" in err


def test_failed_last_stage_sets_status(capfd):
    assert run("echo hi | no-such-command-mysh") == config.EXIT_NOT_FOUND


def test_reader_sees_eof_when_writer_never_started(capfd):
    """The pipe write end meant for the failed stage must not stay open."""
    assert run("no-such-command-mysh | wc -c") == 0
    assert capfd.readouterr().out.strip() == "0"


def test_permission_denied(tmp_path, capfd):
    script = tmp_path / "script.sh"
    script.write_text("#!/bin/sh\necho hi\n")
    script.chmod(0o644)

    assert run("./script.sh", str(tmp_path)) == config.EXIT_NOT_EXECUTABLE
    assert "permission denied" in capfd.readouterr().err


def test_missing_input_file(tmp_path, capfd):
    assert run("cat < missing.txt", str(tmp_path)) == 1
    assert "mysh: cat: missing.txt: No such file or directory" in capfd.readouterr().err


def test_missing_input_file_still_runs_rest(tmp_path, capfd):
    assert run("cat < missing.txt | echo after", str(tmp_path)) == 0
    assert capfd.readouterr().out == "after\n"


def test_output_into_missing_directory(tmp_path, capfd):
    assert run("echo hi > nodir/out.txt", str(tmp_path)) == 1
    assert "nodir/out.txt" in capfd.readouterr().err


def test_exit_status_maps_signals():
    assert exit_status(0) == 0
    assert exit_status(3) == 3
    assert exit_status(-9) == 137


def test_spawn_returns_tagged_result():
    result = spawn(0, ["no-such-command-mysh"])
    assert isinstance(result, SpawnFailure)
    assert result.status == config.EXIT_NOT_FOUND

    handle = spawn(0, ["true"])
    assert isinstance(handle, ProcessHandle)
    assert handle.proc.wait() == 0


def test_no_descriptor_leaks(tmp_path):
    me = psutil.Process()
    (tmp_path / "in.txt").write_text("x\n")
    before = me.num_fds()
    run("cat < in.txt | cat | cat > out.txt", str(tmp_path))
    run("no-such-command-mysh | cat | cat", str(tmp_path))
    assert me.num_fds() == before


def test_no_zombies_after_pipeline():
    run("echo a | cat | cat > /dev/null")
    run("no-such-command-mysh | true")
    assert zombie_children() == []
    assert psutil.Process().children() == []


def test_pipe_creation_failure(monkeypatch, forbid_spawn):
    def no_pipes():
        raise OSError(errno.EMFILE, "Too many open files")

    monkeypatch.setattr(os, "pipe", no_pipes)
    with pytest.raises(OrchestrationError) as exc_info:
        run("echo hi | cat")
    assert "Too many open files" in str(exc_info.value)
    assert forbid_spawn == []


def test_process_creation_failure_unwinds(monkeypatch):
    """Stages already started are waited on, later ones never start."""
    real_popen = subprocess.Popen
    started = []

    def flaky_popen(*args, **kwargs):
        if started:
            raise OSError(errno.EAGAIN, "Resource temporarily unavailable")
        proc = real_popen(*args, **kwargs)
        started.append(proc)
        return proc

    me = psutil.Process()
    before = me.num_fds()
    monkeypatch.setattr(subprocess, "Popen", flaky_popen)

    with pytest.raises(OrchestrationError):
        run("echo hi | cat | cat")

    assert len(started) == 1
    assert started[0].returncode is not None
    assert me.num_fds() == before
    assert zombie_children() == []


def test_start_pipeline_reads_from_given_descriptor(capfd):
    r, w = os.pipe()
    os.write(w, b"fed\n")
    os.close(w)
    try:
        running = start_pipeline(parse_line("tr a-z A-Z"), stdin=r)
    finally:
        os.close(r)
    assert running.wait() == 0
    assert capfd.readouterr().out == "FED\n"
