import os

import psutil

from mysh.config import debug


def zombie_children(pid=None):
    """
    PIDs of direct children of `pid` (default: this interpreter)
    that have terminated but were never waited on.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return []

    zombies = []
    for child in parent.children():
        try:
            if child.status() == psutil.STATUS_ZOMBIE:
                zombies.append(child.pid)
        except psutil.NoSuchProcess:
            continue
    return zombies


def reap_zombies():
    """Wait on stray terminated children. Returns the reaped PIDs."""
    reaped = []
    for pid in zombie_children():
        try:
            done, status = os.waitpid(pid, os.WNOHANG)
        except ChildProcessError:
            continue
        if done:
            debug(f"reaped stray child {done} (status {status})")
            reaped.append(done)
    return reaped
