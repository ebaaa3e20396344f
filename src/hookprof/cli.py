from __future__ import annotations

import importlib.util
import logging
import runpy
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

import typer

from hookprof import __version__
from hookprof.config import as_bool, as_int, merge_payload, profile_defaults, report_defaults
from hookprof.engine import ProfilerEngine
from hookprof.exceptions import ProfilerError
from hookprof.report import dump_profile_json, parse_sort_key, render_profile_markdown

app = typer.Typer(add_completion=False, help="Call-stack profiler for Python programs.")

log = logging.getLogger(__name__)

_DEFAULT_SORT = "total"
_DEFAULT_LIMIT = 25
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class MainTarget:
    name: str
    argv0: str
    path_entry: str
    module: bool = False


def _load_script(path: Path) -> MainTarget:
    if not path.is_file():
        raise typer.BadParameter(f"cannot read script {path}")
    return MainTarget(
        name=str(path),
        argv0=str(path),
        path_entry=str(path.resolve().parent),
    )


def _load_module(name: str) -> MainTarget:
    try:
        spec = importlib.util.find_spec(name)
        if spec is not None and spec.submodule_search_locations is not None:
            spec = importlib.util.find_spec(f"{name}.__main__")
    except ImportError as exc:
        raise typer.BadParameter(f"no module named {name!r}: {exc}") from exc
    if spec is None or spec.loader is None:
        raise typer.BadParameter(f"no module named {name!r}")
    return MainTarget(
        name=name,
        argv0=spec.origin or name,
        path_entry=str(Path.cwd()),
        module=True,
    )


def _run_main(target: MainTarget) -> None:
    # runpy installs a temporary sys.modules["__main__"] for the run
    try:
        if target.module:
            runpy.run_module(target.name, run_name="__main__", alter_sys=True)
        else:
            runpy.run_path(target.name, run_name="__main__")
    except SystemExit as exc:
        if exc.code not in (None, 0):
            raise


@contextmanager
def _main_argv(target: MainTarget, argv: List[str]) -> Iterator[None]:
    saved_argv = sys.argv[:]
    saved_path = sys.path[:]
    sys.argv = [target.argv0, *argv]
    sys.path.insert(0, target.path_entry)
    try:
        yield
    finally:
        sys.argv = saved_argv
        sys.path[:] = saved_path


def _write_output(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level."),
) -> None:
    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"unknown log level {log_level!r}")
    logging.basicConfig(level=level, format=_LOG_FORMAT)


@app.command(
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    },
)
def run(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Script path, or module name with -m."),
    module: bool = typer.Option(False, "-m", "--module", help="Run TARGET as a module."),
    sort: Optional[str] = typer.Option(None, "--sort", help="total, self, calls or name."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Rows to print."),
    ascending: Optional[bool] = typer.Option(None, "--ascending/--descending"),
    natives: Optional[bool] = typer.Option(
        None, "--natives/--no-natives", help="Record calls into builtins."
    ),
    json_out: Optional[Path] = typer.Option(None, "--json", help="Write the payload as JSON."),
    markdown_out: Optional[Path] = typer.Option(
        None, "--markdown", help="Write the markdown report to a file."
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to hookprof.toml."),
) -> None:
    """Run a Python script or module under the profiler."""
    profile_section = merge_payload({"natives": natives}, profile_defaults(config_path=config))
    report_section = merge_payload(
        {
            "sort": sort,
            "limit": limit,
            "descending": None if ascending is None else not ascending,
        },
        report_defaults(config_path=config),
    )
    try:
        sort_key = parse_sort_key(str(report_section.get("sort", _DEFAULT_SORT)))
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--sort") from exc
    max_rows = as_int(report_section.get("limit"), _DEFAULT_LIMIT)
    descending = as_bool(report_section.get("descending"), default=True)

    main_target = _load_module(target) if module else _load_script(Path(target))
    engine = ProfilerEngine(natives=as_bool(profile_section.get("natives"), default=True))
    log.debug("profiling %s with args %r", main_target.argv0, ctx.args)
    try:
        with _main_argv(main_target, list(ctx.args)):
            result = engine.run_and_profile(_run_main, main_target)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        typer.echo(f"{main_target.argv0} exited with status {exc.code}", err=True)
        raise typer.Exit(code=code)
    except ProfilerError as exc:
        typer.echo(f"hookprof: {exc}", err=True)
        raise typer.Exit(code=2)

    markdown = render_profile_markdown(
        result,
        sort=sort_key,
        descending=descending,
        max_rows=max_rows,
    )
    typer.echo(markdown)
    if markdown_out is not None:
        _write_output(markdown_out, markdown)
    if json_out is not None:
        _write_output(json_out, dump_profile_json(result) + "\n")


@app.command()
def version() -> None:
    """Print the hookprof version."""
    typer.echo(__version__)
