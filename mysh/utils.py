"""
Small file utilities reachable as built-ins: tree, ls, grep.
Each takes the full argv of its stage plus the shell's working directory,
writes to sys.stdout / reads sys.stdin and returns an exit status.
"""

import grp
import os
import pwd
import re
import stat
import sys
import time


def resolve_path(path, cwd=None):
    """Resolve a user-supplied path against the shell's working directory."""
    path = os.path.expanduser(path)
    if cwd is None:
        return path
    return os.path.join(cwd, path)


# ---------- tree ----------
def tree(argv, cwd=None):
    """Print the directory hierarchy below argv[1] (default '.')"""
    path = argv[1] if len(argv) > 1 else "."
    root = resolve_path(path, cwd)
    if not os.path.isdir(root):
        reason = "Not a directory" if os.path.exists(root) else "No such file or directory"
        print(f"tree: {path}: {reason}", file=sys.stderr)
        return 1

    print(path)
    _print_tree(root, 0)
    return 0


def _print_tree(path, level):
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as e:
        print(f"tree: {path}: {e.strerror}", file=sys.stderr)
        return

    indent = "│   " * level
    for entry in entries:
        # lstat semantics: a symlink to a directory is printed, not followed
        if entry.is_dir(follow_symlinks=False):
            print(f"{indent}├── {entry.name}/")
            _print_tree(entry.path, level + 1)
        else:
            print(f"{indent}├── {entry.name}")


# ---------- ls ----------
def _owner(uid):
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def _group(gid):
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def format_long(name, st, full_path=None):
    """One `ls -l` line: mode, links, owner, group, size, mtime, name"""
    mtime = time.strftime("%b %d %H:%M", time.localtime(st.st_mtime))
    line = (
        f"{stat.filemode(st.st_mode)} {st.st_nlink:>3} "
        f"{_owner(st.st_uid):<8} {_group(st.st_gid):<8} "
        f"{st.st_size:>8} {mtime} {name}"
    )
    if full_path is not None and stat.S_ISLNK(st.st_mode):
        try:
            line += f" -> {os.readlink(full_path)}"
        except OSError:
            pass
    return line


def _print_entry(name, st, full_path, long_format):
    if long_format:
        print(format_long(name, st, full_path))
    else:
        print(name)


def ls(argv, cwd=None):
    """
    ls [-l] [-a] [path...]
    Returns: 0 on success, 1 if a path could not be listed, 2 on a bad option
    """
    long_format = show_all = False
    paths = []
    for arg in argv[1:]:
        if arg.startswith("-") and len(arg) > 1:
            for flag in arg[1:]:
                if flag == "l":
                    long_format = True
                elif flag == "a":
                    show_all = True
                else:
                    print(f"ls: invalid option -- '{flag}'", file=sys.stderr)
                    return 2
        else:
            paths.append(arg)
    if not paths:
        paths = ["."]

    status = 0
    for n, path in enumerate(paths):
        full = resolve_path(path, cwd)
        try:
            st = os.lstat(full)
        except OSError as e:
            print(f"ls: cannot access '{path}': {e.strerror}", file=sys.stderr)
            status = 1
            continue

        if not stat.S_ISDIR(st.st_mode):
            _print_entry(path, st, full, long_format)
            continue

        try:
            names = os.listdir(full)
        except OSError as e:
            print(f"ls: cannot open directory '{path}': {e.strerror}", file=sys.stderr)
            status = 1
            continue

        if len(paths) > 1:
            if n > 0:
                print()
            print(f"{path}:")

        if show_all:
            names += [".", ".."]
        else:
            names = [name for name in names if not name.startswith(".")]

        for name in sorted(names):
            entry = os.path.join(full, name)
            try:
                entry_st = os.lstat(entry)
            except OSError as e:
                print(f"ls: cannot access '{name}': {e.strerror}", file=sys.stderr)
                status = 1
                continue
            _print_entry(name, entry_st, entry, long_format)

    return status


# ---------- grep ----------
def _grep_stream(regex, stream, label, number, invert):
    matched = False
    for lineno, line in enumerate(stream, 1):
        line = line.rstrip("\n")
        if (regex.search(line) is not None) == invert:
            continue
        matched = True
        prefix = ""
        if label is not None:
            prefix += f"{label}:"
        if number:
            prefix += f"{lineno}:"
        print(prefix + line)
    return matched


def grep(argv, cwd=None):
    """
    grep [-i] [-n] [-v] pattern [file...]
    Returns: 0 if a line was selected, 1 if none, 2 on error
    """
    ignore_case = number = invert = False
    args = []
    options_done = False
    for arg in argv[1:]:
        if not options_done and arg == "--":
            options_done = True
        elif not options_done and arg.startswith("-") and len(arg) > 1:
            for flag in arg[1:]:
                if flag == "i":
                    ignore_case = True
                elif flag == "n":
                    number = True
                elif flag == "v":
                    invert = True
                else:
                    print(f"grep: invalid option -- '{flag}'", file=sys.stderr)
                    return 2
        else:
            args.append(arg)

    if not args:
        print("usage: grep [-i] [-n] [-v] pattern [file...]", file=sys.stderr)
        return 2

    pattern, files = args[0], args[1:]
    try:
        regex = re.compile(pattern, re.IGNORECASE if ignore_case else 0)
    except re.error as e:
        print(f"grep: invalid pattern '{pattern}': {e}", file=sys.stderr)
        return 2

    if not files:
        return 0 if _grep_stream(regex, sys.stdin, None, number, invert) else 1

    matched = error = False
    for name in files:
        label = name if len(files) > 1 else None
        try:
            with open(resolve_path(name, cwd), errors="replace") as fh:
                if _grep_stream(regex, fh, label, number, invert):
                    matched = True
        except BrokenPipeError:
            raise
        except OSError as e:
            print(f"grep: {name}: {e.strerror}", file=sys.stderr)
            error = True

    if error:
        return 2
    return 0 if matched else 1
