"""Subprocess I/O bridge — pipe a buffer through a child, collect its stdout.

run() spawns the command with both standard streams piped, pumps input and
output through a single poll() loop, then reaps the child. The child must not
close its stdout while staying alive and reading stdin: a stdout hang-up is
taken to mean the child is done.
"""

import os
import select
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

from popen_bridge.log import DETAIL, GENERAL, TRANSFER, Log

FAILURE = -1
LAUNCH_FAILURE_STATUS = 127


class InvariantError(RuntimeError):
    """Pipe or cursor bookkeeping is out of sync."""


@dataclass
class Result:
    returncode: int
    output: bytes


@dataclass
class _Transfer:
    data: memoryview
    output: memoryview
    written: int = 0
    received: int = 0

    @property
    def input_done(self) -> bool:
        return self.written == len(self.data)

    @property
    def output_full(self) -> bool:
        return self.received == len(self.output)


def _check(expr: bool, msg: str) -> None:
    if not expr:
        raise InvariantError(msg)


def _close_stdin(proc: subprocess.Popen, poller=None) -> None:
    """Signal end-of-input to the child."""
    _check(not proc.stdin.closed, "stdin pipe closed twice")
    if poller is not None:
        poller.unregister(proc.stdin.fileno())
    proc.stdin.close()


def _pump(proc: subprocess.Popen, xfer: _Transfer, log: Log) -> bool:
    """Feed stdin and drain stdout until stdout hangs up. Returns False on failure."""
    stdin_fd = proc.stdin.fileno()
    stdout_fd = proc.stdout.fileno()
    log.log(DETAIL, f"pipes: in {stdin_fd}; out {stdout_fd}")

    poller = select.poll()
    poller.register(stdout_fd, select.POLLIN)
    if xfer.input_done:
        _close_stdin(proc)
    else:
        os.set_blocking(stdin_fd, False)
        poller.register(stdin_fd, select.POLLOUT)

    while True:
        try:
            events = dict(poller.poll())
        except OSError as e:
            log.syserror("poll error.", e)
            return False

        log.log(DETAIL, f"poll={len(events)}")

        # We can write something to stdin
        if not proc.stdin.closed:
            revents = events.get(stdin_fd, 0)
            if revents & select.POLLOUT:
                try:
                    n = os.write(stdin_fd, xfer.data[xfer.written :])
                except BlockingIOError:
                    n = 0
                except OSError as e:
                    log.syserror("write error.", e)
                    return False
                xfer.written += n
                _check(xfer.written <= len(xfer.data), "input cursor past end of input")
                log.log(TRANSFER, f"write n={n} ({xfer.written}/{len(xfer.data)})")

                if xfer.input_done:
                    # Done writing: only poll stdout from now on.
                    _close_stdin(proc, poller)
                revents &= ~select.POLLOUT

            if revents:
                log.error(f"Unknown poll event on stdin ({revents}).")
                return False

        # We can read something from stdout
        revents = events.get(stdout_fd, 0)
        if revents & select.POLLIN:
            try:
                if xfer.output_full:
                    # Probe: end-of-file means the output fit exactly.
                    if os.read(stdout_fd, 1):
                        log.error(f"Output too long (capacity {len(xfer.output)}).")
                        return False
                    n = 0
                else:
                    n = os.readv(stdout_fd, [xfer.output[xfer.received :]])
            except OSError as e:
                log.syserror("read error.", e)
                return False

            if n == 0:
                log.log(DETAIL, "eof")
                return True

            xfer.received += n
            _check(xfer.received <= len(xfer.output), "output cursor past capacity")
            log.log(TRANSFER, f"read n={n} ({xfer.received}/{len(xfer.output)})")
            if log.enabled(DETAIL):
                log.log(DETAIL, f"output: {bytes(xfer.output[: xfer.received])!r}")

            if xfer.output_full:
                continue
            revents &= ~select.POLLIN

        # stdout has hung up (process terminated)
        if revents == select.POLLHUP:
            log.log(DETAIL, "pollhup")
            return True
        if revents:
            log.error(f"Unknown poll event on stdout ({revents}).")
            return False


def _reap(proc: subprocess.Popen, log: Log) -> int:
    """Close our pipe ends and wait for the child. Returns 0, -status or FAILURE."""
    if not proc.stdin.closed:
        proc.stdin.close()
    # A child still writing gets SIGPIPE once the read end is gone
    proc.stdout.close()

    try:
        _, status = os.waitpid(proc.pid, 0)
    except OSError as e:
        log.syserror("waitpid error.", e)
        return FAILURE

    if os.WIFEXITED(status):
        code = os.WEXITSTATUS(status)
        proc.returncode = code
        log.log(DETAIL, f"child {proc.pid} exited")
        if code != 0:
            log.error(f"child exited with status {code}")
            return -code
        return 0

    if os.WIFSIGNALED(status):
        proc.returncode = -os.WTERMSIG(status)
    log.error(f"child process did not exit: {status}")
    return FAILURE


def run(
    command: str,
    args: Sequence[str] | None,
    data: bytes,
    output: bytearray,
    log: Log | None = None,
) -> int:
    """Run command, feed it data on stdin and collect stdout into output.

    args is the full argument vector including argv[0]; None means [command].
    The capacity is len(output) and nothing is written past it.

    Returns the number of bytes stored in output, or a negative number on
    error: -N when the child exited with status N (-127: could not launch),
    -1 for anything else.
    """
    log = log or Log()
    argv = [command] if args is None else list(args)
    if not argv:
        raise ValueError("argument vector must not be empty")

    with memoryview(data) as inview, memoryview(output) as outview:
        if outview.readonly:
            raise TypeError("output buffer must be writable")

        try:
            proc = subprocess.Popen(
                argv,
                executable=command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                bufsize=0,
            )
        except OSError as e:
            # Exec failures carry the program name; pipe and fork failures don't
            if e.filename is not None:
                log.syserror(f"Error running '{command}'.", e)
                return -LAUNCH_FAILURE_STATUS
            log.syserror("Failed to spawn child.", e)
            return FAILURE

        log.log(
            GENERAL,
            f"{command}: pid {proc.pid}, {len(inview)} bytes in, capacity {len(outview)}",
        )

        xfer = _Transfer(data=inview, output=outview)
        pumped = False
        try:
            pumped = _pump(proc, xfer, log)
        finally:
            status = _reap(proc, log)

        if status < 0:
            return status
        if not pumped:
            return FAILURE
        if not xfer.input_done:
            log.error(f"Incomplete write ({xfer.written}/{len(xfer.data)}).")
            return FAILURE

        log.log(GENERAL, f"{command}: {xfer.received} bytes out")
        return xfer.received


def describe_failure(command: str, returncode: int) -> str:
    """Human-readable reason for a negative run() result."""
    if returncode == -LAUNCH_FAILURE_STATUS:
        return f"'{command}' could not be launched"
    if returncode < FAILURE:
        return f"'{command}' exited with status {-returncode}"
    return f"'{command}' failed"


def transform(
    command: str,
    args: Sequence[str] | None,
    data: bytes,
    capacity: int,
    log: Log | None = None,
) -> Result:
    """run() with a freshly allocated output buffer."""
    buf = bytearray(capacity)
    code = run(command, args, data, buf, log)
    output = bytes(buf[:code]) if code >= 0 else b""
    return Result(returncode=code, output=output)


def check_transform(
    command: str,
    args: Sequence[str] | None,
    data: bytes,
    capacity: int,
    log: Log | None = None,
) -> bytes:
    """Like transform(), but raises RuntimeError on failure."""
    result = transform(command, args, data, capacity, log)
    if result.returncode < 0:
        raise RuntimeError(describe_failure(command, result.returncode))
    return result.output
