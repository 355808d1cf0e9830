from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_PAGES,
    DEFAULT_TTL_HOURS,
    WebsiteResourceConfig,
    default_resources_dir,
)
from .errors import WebsnapError
from .inspection import inspect_snapshot
from .render import PlaywrightRenderer, Renderer
from .resource import load_website_resource


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _run_load(args: argparse.Namespace) -> int:
    config = WebsiteResourceConfig(
        name=args.name,
        url=args.url,
        max_pages=int(args.max_pages),
        max_depth=int(args.max_depth),
        ttl_hours=int(args.ttl_hours),
    )

    renderer: Renderer | None = None
    try:
        if bool(args.render):
            renderer = PlaywrightRenderer()
        resource = load_website_resource(
            config,
            resources_dir=args.resources_dir,
            renderer=renderer,
            show_progress=bool(args.progress),
        )
    except (WebsnapError, RuntimeError) as e:
        print(str(e), file=sys.stderr)
        return 2
    finally:
        if renderer is not None:
            renderer.close()

    print(
        "load: "
        f"name={resource.name} "
        f"status={resource.status.value} "
        f"pages={resource.page_count} "
        f"path={resource.path}"
    )
    return 0


def _run_inspect(args: argparse.Namespace) -> int:
    try:
        inspected = inspect_snapshot(
            snapshot_dir=args.in_dir,
            max_missing_paths_sample=int(args.max_missing_sample),
        )
    except (OSError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return 2

    if bool(args.json):
        print(json.dumps(inspected.to_dict(), indent=2))
    else:
        print(
            "inspect: "
            f"url={inspected.url} "
            f"crawled_at={inspected.crawled_at} "
            f"pages={inspected.page_count} "
            f"index_lines={inspected.index_lines} "
            f"invalid_json={inspected.index_invalid_json} "
            f"index_matches_manifest={inspected.index_matches_manifest} "
            f"missing_files={inspected.missing_files}"
        )
        if inspected.missing_paths_sample:
            print("inspect: missing_paths_sample:")
            for p in inspected.missing_paths_sample:
                print(f"- {p}")

    if bool(args.fail_on_missing) and inspected.missing_files:
        return 4
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="websnap")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-q", "--quiet", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    load_p = sub.add_parser(
        "load",
        help="Crawl a website into a local snapshot, reusing a fresh cached one",
    )
    load_p.add_argument("--name", required=True, help="Resource name, e.g. react-docs")
    load_p.add_argument("--url", required=True, help="Public HTTPS start URL")
    load_p.add_argument("--max-pages", type=int, default=DEFAULT_MAX_PAGES)
    load_p.add_argument("--max-depth", type=int, default=DEFAULT_MAX_DEPTH)
    load_p.add_argument("--ttl-hours", type=int, default=DEFAULT_TTL_HOURS)
    load_p.add_argument(
        "--resources-dir",
        type=Path,
        default=None,
        help="Where snapshots live (default: $WEBSNAP_RESOURCES_DIR or ~/.local/share/websnap/resources)",
    )
    load_p.add_argument(
        "--render",
        action="store_true",
        help="Re-render client-side pages in a headless browser (needs playwright)",
    )
    load_p.add_argument("--progress", action="store_true", help="Show a progress bar")

    inspect_p = sub.add_parser(
        "inspect",
        help="Summarize and validate an existing snapshot directory",
    )
    inspect_p.add_argument(
        "--in",
        dest="in_dir",
        type=Path,
        required=True,
        help="Snapshot directory containing the manifest, _index.jsonl and pages/",
    )
    inspect_p.add_argument(
        "--json",
        action="store_true",
        help="Print machine-readable JSON to stdout",
    )
    inspect_p.add_argument(
        "--fail-on-missing",
        action="store_true",
        help="Return non-zero if any referenced page files are missing",
    )
    inspect_p.add_argument(
        "--max-missing-sample",
        type=int,
        default=25,
        help="Max missing paths to include in output",
    )

    args = parser.parse_args(argv)
    _configure_logging(bool(args.verbose), bool(args.quiet))

    if args.cmd == "load":
        if args.resources_dir is None:
            args.resources_dir = default_resources_dir()
        return _run_load(args)
    if args.cmd == "inspect":
        return _run_inspect(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
