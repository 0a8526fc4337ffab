import errno
import os
import subprocess
import sys
from dataclasses import dataclass, field
from typing import List

from mysh import config
from mysh.config import debug
from mysh.errors import OrchestrationError
from mysh.parser import APPEND
from mysh.utils import resolve_path


@dataclass
class ProcessHandle:
    """A spawned stage: its index in the pipeline and its Popen object."""

    index: int
    proc: subprocess.Popen

    @property
    def pid(self):
        return self.proc.pid


@dataclass
class SpawnFailure:
    """A stage that never started; carries the status it is reported with."""

    index: int
    program: str
    reason: str
    status: int


def open_input(path, cwd=None):
    """Open a `<` target. Returns a raw descriptor owned by the caller."""
    return os.open(resolve_path(path, cwd), os.O_RDONLY)


def open_output(redirect, cwd=None):
    """Open a `>` / `>>` target. Returns a raw descriptor owned by the caller."""
    flags = os.O_WRONLY | os.O_CREAT
    flags |= os.O_APPEND if redirect.mode == APPEND else os.O_TRUNC
    return os.open(resolve_path(redirect.path, cwd), flags, config.REDIRECT_FILE_MODE)


def exit_status(returncode):
    """Map Popen.returncode to a shell status (signals become 128 + n)."""
    if returncode < 0:
        return config.EXIT_SIGNAL_BASE - returncode
    return returncode


def _close(fd, owned):
    if fd in owned:
        owned.discard(fd)
        os.close(fd)


def _close_all(owned):
    for fd in list(owned):
        _close(fd, owned)


def _flush_std():
    # Children write straight to fd 1/2, flush what Python has buffered first
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (AttributeError, ValueError, OSError):
            pass


def spawn(index, argv, stdin=None, stdout=None, cwd=None, env=None):
    """
    Start one stage.
    Returns: ProcessHandle, or SpawnFailure when the program cannot be run
    Raises: OrchestrationError when the OS refuses to create the process
    """
    program = argv[0]
    try:
        proc = subprocess.Popen(
            argv,
            stdin=stdin,
            stdout=stdout,
            cwd=cwd,
            env=env,
            close_fds=True,
        )
    except (FileNotFoundError, NotADirectoryError) as e:
        if cwd is not None and e.filename == cwd:
            return SpawnFailure(index, program, f"{cwd}: {e.strerror}", config.EXIT_FAILURE)
        return SpawnFailure(index, program, "command not found", config.EXIT_NOT_FOUND)
    except PermissionError:
        return SpawnFailure(index, program, "permission denied", config.EXIT_NOT_EXECUTABLE)
    except OSError as e:
        if e.errno == errno.ENOEXEC:
            return SpawnFailure(index, program, "cannot execute binary file", config.EXIT_NOT_EXECUTABLE)
        raise OrchestrationError(f"{program}: cannot create process: {e.strerror}", e) from e

    debug(f"stage {index} '{program}' started as pid {proc.pid}")
    return ProcessHandle(index, proc)


@dataclass
class RunningPipeline:
    """Outcome of every stage of a started pipeline, in stage order."""

    results: List[object] = field(default_factory=list)

    @property
    def handles(self):
        return [r for r in self.results if isinstance(r, ProcessHandle)]

    def wait(self):
        """
        Wait for every spawned stage.
        Returns: status of the last stage
        """
        statuses = []
        for result in self.results:
            if isinstance(result, SpawnFailure):
                statuses.append(result.status)
                continue
            status = exit_status(_wait(result.proc))
            debug(f"stage {result.index} pid {result.pid} exited with {status}")
            statuses.append(status)
        return statuses[-1] if statuses else config.EXIT_SUCCESS


def _wait(proc):
    # Ctrl-C reaches the children through the terminal, keep collecting
    while True:
        try:
            return proc.wait()
        except KeyboardInterrupt:
            continue


def start_pipeline(pipeline, cwd=None, stdin=None):
    """
    Spawn every stage of `pipeline`, connected by pipes.

    Stage i's stdout feeds stage i+1's stdin. The first stage reads from its
    `<` file, else from the `stdin` descriptor if one is given, else from the
    interpreter's stdin; the last stage writes to its `>`/`>>` file or to the
    interpreter's stdout. The `stdin` descriptor stays owned by the caller.

    Every descriptor the orchestrator opens is closed in the parent once the
    child it belongs to has been started, so readers see end-of-file as soon
    as their writer exits.

    Raises: OrchestrationError if a pipe or a process cannot be created;
    stages started before the failure are waited on first.
    """
    stages = list(pipeline)
    n = len(stages)
    run = RunningPipeline()
    env = dict(os.environ, PWD=cwd) if cwd is not None else None
    owned = set()
    pipes = []

    _flush_std()
    try:
        for _ in range(n - 1):
            try:
                r, w = os.pipe()
            except OSError as e:
                raise OrchestrationError(f"pipe: {e.strerror}", e) from e
            owned.update((r, w))
            pipes.append((r, w))

        for i, stage in enumerate(stages):
            child_in = child_out = path = None
            try:
                if i > 0:
                    child_in = pipes[i - 1][0]
                elif stage.input_source is not None:
                    path = stage.input_source
                    child_in = open_input(path, cwd)
                    owned.add(child_in)
                elif stdin is not None:
                    child_in = stdin

                if i < n - 1:
                    child_out = pipes[i][1]
                elif stage.output_target is not None:
                    path = stage.output_target.path
                    child_out = open_output(stage.output_target, cwd)
                    owned.add(child_out)
            except OSError as e:
                result = SpawnFailure(i, stage.name, f"{path}: {e.strerror}", config.EXIT_FAILURE)
            else:
                result = spawn(i, stage.argv, child_in, child_out, cwd, env)
            finally:
                # The child holds its own copies now (or never started)
                _close(child_in, owned)
                _close(child_out, owned)

            if isinstance(result, SpawnFailure):
                print(f"mysh: {result.program}: {result.reason}", file=sys.stderr)
            run.results.append(result)

    except BaseException:
        # Unstarted stages are dropped; close first so started readers see EOF
        _close_all(owned)
        run.wait()
        raise

    _close_all(owned)
    return run


def execute_pipeline(pipeline, cwd=None, stdin=None):
    """
    Run `pipeline` to completion.
    Returns: exit status of the last stage (0 for an empty pipeline)
    """
    if not len(pipeline):
        return config.EXIT_SUCCESS
    return start_pipeline(pipeline, cwd=cwd, stdin=stdin).wait()
