"""Child-process side of the isolated evaluator.

This module is the *only* code that runs inside a sandbox process. It must
stay importable with the standard library alone, since every session pays
for its import at start-up.

Protocol over a :mod:`multiprocessing` connection::

    child  → parent   {"ready": True}
    parent → child    {"source": ..., "annotated": [...], "filename": ...}
    child  → parent   {"captures": [...], "error": ..., ...}
    ...
    parent → child    None          (shutdown)

Every block of a session executes in the same namespace, created once per
process and holding nothing but ``__name__`` and ``__builtins__``.
"""

from __future__ import annotations

import ast
import builtins
import io
import os
import signal
import sys
import tempfile
import traceback
from contextlib import redirect_stderr, redirect_stdout
from typing import Any

_NO_VALUE = object()


def new_namespace() -> dict[str, Any]:
    """A fresh module namespace with no inherited bindings."""
    return {"__name__": "__main__", "__builtins__": builtins}


def serve(conn: Any) -> None:
    """Process entry point: answer block requests until told to stop."""
    # Operator interrupts are handled by the parent; in-flight blocks finish.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    sys.stdin = io.StringIO("")

    with tempfile.TemporaryDirectory(prefix="snipcheck-") as workdir, tempfile.TemporaryFile() as sink:
        os.chdir(workdir)
        _redirect_descriptors(sink)
        namespace = new_namespace()
        conn.send({"ready": True, "pid": os.getpid()})
        while True:
            try:
                request = conn.recv()
            except EOFError:
                break
            if request is None:
                break
            reply = run_block(
                namespace,
                request["source"],
                request.get("annotated", ()),
                filename=request.get("filename", "<snippet>"),
            )
            reply["stderr"] += _drain(sink)
            conn.send(reply)
        # Leave the directory before it is removed
        os.chdir(tempfile.gettempdir())
    conn.close()


def _redirect_descriptors(sink: Any) -> None:
    """Point fd 1 and fd 2 at *sink*.

    Subprocesses, ``os.write`` and ``sys.__stdout__`` bypass the per-statement
    redirection; without this their output would land in the caller's stdout.
    """
    _flush_standard_streams()
    for fd in (1, 2):
        os.dup2(sink.fileno(), fd)


def _drain(sink: Any) -> str:
    """Return and discard everything written to the descriptors since the last drain."""
    _flush_standard_streams()
    sink.seek(0)
    data = sink.read()
    sink.seek(0)
    sink.truncate()
    return data.decode("utf-8", errors="replace")


def _flush_standard_streams() -> None:
    for stream in (sys.__stdout__, sys.__stderr__):
        if stream is not None and not stream.closed:
            stream.flush()


def run_block(
    namespace: dict[str, Any],
    source: str,
    annotated: Any = (),
    *,
    filename: str = "<snippet>",
) -> dict[str, Any]:
    """Execute *source* statement by statement inside *namespace*.

    Args:
        namespace: Module namespace shared by the blocks of one session.
        source: Block source.
        annotated: 0-based line offsets that carry expectations.
        filename: Name used in compiled code objects and tracebacks.

    Returns:
        A plain dict (picklable) with ``captures`` as
        ``[offset, text, alternate]`` triples, ``error`` (``None`` or
        ``"Type: message"``), ``error_offset`` (first line of the failing
        statement), ``error_line`` (line the exception was raised on) and
        the captured ``stderr``.
    """
    reply: dict[str, Any] = {
        "captures": [],
        "error": None,
        "error_offset": None,
        "error_line": None,
        "stderr": "",
    }
    pending = io.StringIO()
    errors = io.StringIO()
    wanted = sorted(set(annotated))

    try:
        tree = ast.parse(source, filename)
    except SyntaxError as exc:
        reply["error"] = f"SyntaxError: {exc.msg}"
        reply["error_offset"] = 0
        reply["error_line"] = (exc.lineno or 1) - 1
        return reply

    for stmt in tree.body:
        start = _first_line(stmt) - 1
        end = (stmt.end_lineno or stmt.lineno) - 1
        lines_here = [offset for offset in wanted if start <= offset <= end]

        try:
            with redirect_stdout(pending), redirect_stderr(errors):
                value = _execute(stmt, namespace, filename, want_value=bool(lines_here))
        except (Exception, SystemExit) as exc:
            reply["error"] = _describe(exc)
            reply["error_offset"] = start
            reply["error_line"] = _raising_line(exc, filename, default=start)
            break

        if lines_here:
            printed = pending.getvalue()
            pending.seek(0)
            pending.truncate()
            reply["captures"].extend(_captures(lines_here, printed, value))

    reply["stderr"] = errors.getvalue()
    return reply


def _first_line(stmt: ast.stmt) -> int:
    decorators = getattr(stmt, "decorator_list", None) or []
    return min([stmt.lineno, *(d.lineno for d in decorators)])


def _execute(stmt: ast.stmt, namespace: dict[str, Any], filename: str, *, want_value: bool) -> Any:
    if isinstance(stmt, ast.Expr):
        code = compile(ast.Expression(body=stmt.value), filename, "eval")
        return eval(code, namespace)  # noqa: S307

    module = ast.Module(body=[stmt], type_ignores=[])
    exec(compile(module, filename, "exec"), namespace)  # noqa: S102

    if want_value:
        target = _assigned_target(stmt)
        if target is not None:
            try:
                return eval(ast.unparse(target), namespace)  # noqa: S307
            except Exception:
                # Re-reading the target is best effort; the statement itself succeeded.
                return _NO_VALUE
    return _NO_VALUE


def _assigned_target(stmt: ast.stmt) -> ast.expr | None:
    if isinstance(stmt, ast.Assign):
        return stmt.targets[0]
    if isinstance(stmt, ast.AnnAssign) and stmt.value is not None:
        return stmt.target
    if isinstance(stmt, ast.AugAssign):
        return stmt.target
    return None


def _render(value: Any) -> tuple[str | None, str | None]:
    if value is _NO_VALUE or value is None:
        return None, None
    try:
        text = _plain(repr(value))
        alternate = _plain(str(value)) if isinstance(value, str) else None
    except Exception as exc:
        return f"<unrepresentable {type(value).__name__}: {exc}>", None
    return text, (alternate if alternate != text else None)


def _plain(text: str) -> str:
    # Replies are unpickled by the parent, which cannot import classes defined by a snippet.
    return str.__str__(text)


def _captures(lines_here: list[int], printed: str, value: Any) -> list[list[Any]]:
    printed = printed[:-1] if printed.endswith("\n") else printed
    text, alternate = _render(value)

    printed_lines = printed.splitlines()
    if text is None and len(lines_here) > 1 and len(printed_lines) == len(lines_here):
        return [[offset, line, None] for offset, line in zip(lines_here, printed_lines)]

    primary = "\n".join(part for part in (printed, text) if part)
    if alternate is not None and printed:
        alternate = f"{printed}\n{alternate}"
    return [[offset, primary, alternate] for offset in lines_here]


def _describe(exc: BaseException) -> str:
    message = _plain(str(exc))
    name = type(exc).__name__
    return f"{name}: {message}" if message else name


def _raising_line(exc: BaseException, filename: str, *, default: int) -> int:
    frames = [f for f in traceback.extract_tb(exc.__traceback__) if f.filename == filename]
    if frames and frames[-1].lineno:
        return frames[-1].lineno - 1
    return default
