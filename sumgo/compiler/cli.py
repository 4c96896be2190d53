from __future__ import annotations
import argparse, logging, sys, traceback
from pathlib import Path
from typing import Optional

from sumgo import __version__
from sumgo.compiler.config import ConfigError, SumgoConfig, find_config, load_config
from sumgo.compiler.pipeline import CompileResult, compile_file
from sumgo.internals import errors as er
from sumgo.internals.report import Reporter
from sumgo.internals.version import print_banner

logger = logging.getLogger(__name__)


def output_path(source: Path, out: Optional[str] = None) -> Path:
    """Where the Go file for `source` goes; never the source itself."""
    if out:
        return Path(out)
    if source.suffix == ".go":
        return source.with_name(f"{source.stem}_sumgo.go")
    return source.with_suffix(".go")


def _config_for(source: Path, explicit: Optional[str]) -> SumgoConfig:
    if explicit:
        return load_config(Path(explicit))
    return load_config(find_config(source.parent))


def _config_failure(path: str, reason: str) -> int:
    reporter = Reporter(filename=path)
    er.emit(reporter, er.ERR.SG3001, None, path=path, reason=reason)
    reporter.print()
    return 2


def _compile_one(source: Path, args) -> int:
    try:
        config = _config_for(source, args.config)
    except ConfigError as e:
        return _config_failure(args.config or str(source.parent / "sumgo.toml"), str(e))

    try:
        result = compile_file(source, config)
    except OSError as e:
        print(f"error: cannot read {source}: {e.strerror or e}", file=sys.stderr)
        return 2

    if result.reporter.items:
        result.reporter.print()
    if not result.ok:
        return result.exit_code

    if args.dump_decls:
        for decl in result.declarations:
            print(decl.text)
            print()

    if args.stdout:
        sys.stdout.write(result.code)
        return result.exit_code

    out = output_path(source, args.out)
    _write(result, out, config, args.write_map)
    return result.exit_code


def _write(result: CompileResult, out: Path, config: SumgoConfig, write_map: bool) -> None:
    out.write_text(result.code, encoding="utf-8")
    logger.info("wrote %s", out)
    if write_map and config.sourcemaps.enabled:
        map_path = out.with_name(out.name + ".map.json")
        result.source_map(out.name).write(map_path)
        logger.info("wrote %s", map_path)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(prog="sumgoc",
                                 description="Compile Go with sum types and match expressions to plain Go")

    ap.add_argument("sources", nargs="+", metavar="SOURCE", help="Path to source file(s) (.sgo)")
    ap.add_argument("-o", "--out", metavar="OUT",
                    help="Output path (default: source filename with a .go extension)")
    ap.add_argument("--config", metavar="PATH",
                    help="Configuration file (default: sumgo.toml next to each source)")
    ap.add_argument("--write-map", action="store_true",
                    help="Write the source map to <OUT>.map.json")
    ap.add_argument("--dump-decls", action="store_true",
                    help="Print the generated sum-type declarations")
    ap.add_argument("--stdout", action="store_true",
                    help="Print generated Go instead of writing files")
    ap.add_argument("-v", "--verbose", action="store_true",
                    help="Debug logging")
    ap.add_argument(
        "--traceback",
        action="store_true",
        help="Print full traceback on internal errors (for debugging)",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.out and len(args.sources) > 1:
        print("error: -o/--out needs exactly one source file", file=sys.stderr)
        return 2

    if not args.stdout:
        print_banner()

    status = 0
    for name in args.sources:
        source = Path(name)
        try:
            code = _compile_one(source, args)
        except RuntimeError as e:
            # internal compiler errors (IE codes)
            if args.traceback:
                traceback.print_exc()
            print(f"internal error while compiling {source}: {e}", file=sys.stderr)
            code = 2
        status = max(status, code)
    return status


if __name__ == "__main__":
    raise SystemExit(main())
