import os
import sys
from contextlib import ExitStack, contextmanager

from mysh import config, utils
from mysh.config import debug
from mysh.errors import BuiltinError
from mysh.executor import start_pipeline
from mysh.parser import APPEND, Pipeline
from mysh.utils import resolve_path


def builtin_help(shell, args):
    """Print help message"""
    print("""mysh help:
 Built-in commands:
  cd [dir]      : change directory (default: $HOME)
  pwd           : print working directory
  exit          : exit shell
  clear         : clear the screen
  rmdir dir...  : remove empty directories
  tree [dir]    : print a directory tree
  ls [-l] [-a] [path...]              : list directory contents
  grep [-i] [-n] [-v] pattern [file...] : print matching lines
  help          : print this help

Operators (separate them with spaces):
  a | b         : pipe a's output into b
  < file        : read the first command's input from file
  > file        : write the last command's output to file
  >> file       : append the last command's output to file
""")
    return 0


def builtin_cd(shell, args):
    """Change the shell's working directory"""
    if len(args) > 1:
        raise BuiltinError("cd", "too many arguments")
    if args:
        arg = args[0]
    else:
        arg = os.environ.get("HOME")
        if not arg:
            raise BuiltinError("cd", "HOME not set")

    path = os.path.normpath(resolve_path(arg, shell.cwd))
    if not os.path.exists(path):
        raise BuiltinError("cd", f"{arg}: No such file or directory")
    if not os.path.isdir(path):
        raise BuiltinError("cd", f"{arg}: Not a directory")
    if not os.access(path, os.X_OK):
        raise BuiltinError("cd", f"{arg}: Permission denied")

    shell.cwd = path
    return 0


def builtin_pwd(shell, args):
    """Print the shell's working directory"""
    if not os.path.isdir(shell.cwd):
        raise BuiltinError("pwd", f"{shell.cwd}: No such file or directory")
    print(shell.cwd)
    return 0


def builtin_exit(shell, args):
    """Stop the read loop"""
    shell.running = False
    return 0


def builtin_clear(shell, args):
    sys.stdout.write(config.CLEAR_SEQUENCE)
    sys.stdout.flush()
    return 0


def builtin_rmdir(shell, args):
    """Remove empty directories"""
    if not args:
        raise BuiltinError("rmdir", "missing operand")
    status = 0
    for arg in args:
        try:
            os.rmdir(resolve_path(arg, shell.cwd))
        except OSError as e:
            print(f"rmdir: failed to remove '{arg}': {e.strerror}", file=sys.stderr)
            status = 1
    return status


def builtin_tree(shell, args):
    return utils.tree(["tree", *args], shell.cwd)


def builtin_ls(shell, args):
    return utils.ls(["ls", *args], shell.cwd)


def builtin_grep(shell, args):
    return utils.grep(["grep", *args], shell.cwd)


# name -> (handler, writes plain text that can be piped onward)
BUILTINS = {
    "cd": (builtin_cd, False),
    "exit": (builtin_exit, False),
    "pwd": (builtin_pwd, True),
    "clear": (builtin_clear, False),
    "rmdir": (builtin_rmdir, False),
    "help": (builtin_help, True),
    "tree": (builtin_tree, True),
    "ls": (builtin_ls, True),
    "grep": (builtin_grep, True),
}


def is_builtin(name):
    return name in BUILTINS


@contextmanager
def redirect_stdio(stdin=None, stdout=None):
    """Rebind sys.stdin / sys.stdout for the duration of a built-in."""
    saved = sys.stdin, sys.stdout
    if stdin is not None:
        sys.stdin = stdin
    if stdout is not None:
        sys.stdout = stdout
    try:
        yield
    finally:
        sys.stdin, sys.stdout = saved


def _call(shell, handler, argv):
    try:
        return handler(shell, argv[1:])
    except BuiltinError as e:
        print(e, file=sys.stderr)
        return config.EXIT_FAILURE


def _open_stream(stage, stack, path, mode, cwd):
    try:
        return stack.enter_context(open(resolve_path(path, cwd), mode, errors="replace"))
    except OSError as e:
        raise BuiltinError(stage.name, f"{path}: {e.strerror}") from e


def _open_input(stage, stack, cwd):
    if stage.input_source is None:
        return None
    return _open_stream(stage, stack, stage.input_source, "r", cwd)


def _open_output(stage, stack, cwd):
    target = stage.output_target
    if target is None:
        return None
    mode = "a" if target.mode == APPEND else "w"
    return _open_stream(stage, stack, target.path, mode, cwd)


def _run_redirected(shell, handler, stage):
    with ExitStack() as stack:
        try:
            stdin = _open_input(stage, stack, shell.cwd)
            stdout = _open_output(stage, stack, shell.cwd)
        except BuiltinError as e:
            print(f"mysh: {e}", file=sys.stderr)
            return config.EXIT_FAILURE

        with redirect_stdio(stdin, stdout):
            return _call(shell, handler, stage.argv)


def _run_feeding(shell, handler, pipeline):
    """
    Run a text built-in as stage 0 with its output piped into the
    remaining stages, which are spawned first so the pipe never fills up
    with nobody reading.
    """
    stage = pipeline.first
    downstream = Pipeline(pipeline.stages[1:])

    r, w = os.pipe()
    try:
        run = start_pipeline(downstream, cwd=shell.cwd, stdin=r)
    except BaseException:
        os.close(w)
        raise
    finally:
        os.close(r)

    try:
        with ExitStack() as stack:
            # Owns w from here on; closing it is what signals EOF downstream
            out = stack.enter_context(os.fdopen(w, "w"))
            try:
                stdin = _open_input(stage, stack, shell.cwd)
                with redirect_stdio(stdin, out):
                    _call(shell, handler, stage.argv)
                out.flush()
            except BuiltinError as e:
                print(f"mysh: {e}", file=sys.stderr)
            except BrokenPipeError:
                debug(f"'{stage.name}': reader closed the pipe early")
            try:
                stack.close()
            except BrokenPipeError:
                pass
    finally:
        status = run.wait()
    return status


def run_builtin(shell, pipeline):
    """
    Run stage 0 of `pipeline` inside the interpreter process.
    Returns: exit status (the last stage's when output is piped onward)
    """
    stage = pipeline.first
    handler, pipeable = BUILTINS[stage.name]

    if len(pipeline) > 1:
        if pipeable:
            return _run_feeding(shell, handler, pipeline)
        debug(f"'{stage.name}' does not write output, {len(pipeline) - 1} piped stage(s) not started")

    return _run_redirected(shell, handler, stage)
