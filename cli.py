"""
CLI entry point for todo-rank. Wires the pipeline: ingest -> filter -> score -> rank -> report
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from errors import TodoRankError
from ingest.gitlab import GitLabClient
from report.renderer import render, FORMATS
from scoring.engine import rank_todos
from scoring.utils import load_settings, parse_extensions, ScoringSettings
from storage.retry import configure_retry

logger = logging.getLogger(__name__)


def _resolve_connection(args, parser):
    """Resolve token, host and user from CLI args or environment variables and attach them to args.
    Calls parser.error() if any of them is missing.
    """
    token = args.token or os.getenv('GITLAB_TOKEN')
    host = args.host or os.getenv('GITLAB_HOST')
    user = args.user or os.getenv('GITLAB_USER_NAME')

    missing = []
    if not token:
        missing.append('token (CLI flag --token or env GITLAB_TOKEN)')
    if not host:
        missing.append('host (CLI flag --host or env GITLAB_HOST)')
    if not user:
        missing.append('user (CLI flag --user or env GITLAB_USER_NAME)')
    if missing:
        parser.error('Missing required settings: ' + ', '.join(missing))

    args.token = token
    args.host = host
    args.user = user


def _build_settings(args) -> ScoringSettings:
    settings = load_settings(args.user, args.config or None)
    return settings.with_overrides(
        priority_extensions=parse_extensions(args.ext) if args.ext else None,
        workers=args.workers,
        lookback_days=args.lookback_days,
    )


def _configure_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def write_output(rendered: str, out_file: str):
    """Write output to a file when out_file is given, otherwise to stdout."""
    if not out_file:
        print(rendered)
        return
    out_dir = os.path.dirname(out_file)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(out_file, 'w', encoding='utf-8', newline='') as fh:
        fh.write(rendered)
    print(f"Wrote report to {out_file}")


def run_pipeline(args, client=None) -> str:
    """Fetch, score and render. Returns the rendered report; raises TodoRankError on failure."""
    settings = _build_settings(args)
    client = client or GitLabClient(args.host, args.token)
    result = rank_todos(client, settings)
    logger.info("ranked %d item(s); commit memo %s", len(result.items), result.memo_stats)
    return render(
        result,
        fmt=args.output,
        debug=args.debug,
        generated_at=datetime.now(timezone.utc).isoformat(),
        user=args.user,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rank pending GitLab To-Dos by priority")
    parser.add_argument("--host", type=str, help="GitLab host, e.g. gitlab.example.com (or env GITLAB_HOST)")
    parser.add_argument("--token", type=str, help="GitLab access token (or env GITLAB_TOKEN)")
    parser.add_argument("--user", type=str, help="GitLab username used for mention and commit matching (or env GITLAB_USER_NAME)")
    parser.add_argument("--output", type=str, choices=FORMATS, default="text", help="Output format (default: text)")
    parser.add_argument("--out-file", type=str, default="", help="Write the report to this file instead of stdout")
    parser.add_argument("--debug", action="store_true", help="Show each signal's contribution next to the total score")
    parser.add_argument("--config", type=str, default="", help="Path to a YAML settings file (default: config/priority.yaml when present)")
    parser.add_argument("--ext", action="append", default=[], help="Priority file extension; repeat or comma-separate (replaces the configured list)")
    parser.add_argument("--workers", type=int, default=None, help="Concurrent fetches for diffs and commits (1 = sequential)")
    parser.add_argument("--lookback-days", type=int, default=None, help="Commit history window in days (default: 365)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging on stderr")
    # retry/backoff knobs: optional CLI overrides. Environment variables TODO_RANK_MAX_RETRIES, TODO_RANK_BACKOFF_BASE,
    # TODO_RANK_BACKOFF_JITTER, TODO_RANK_MAX_BACKOFF may also be used to set defaults.
    parser.add_argument("--max-retries", type=int, default=None, help="Maximum attempts per HTTP request (overrides TODO_RANK_MAX_RETRIES env)")
    parser.add_argument("--backoff-base", type=float, default=None, help="Base backoff seconds (overrides TODO_RANK_BACKOFF_BASE env)")
    parser.add_argument("--backoff-jitter", type=float, default=None, help="Jitter seconds added to backoff (overrides TODO_RANK_BACKOFF_JITTER env)")
    parser.add_argument("--max-backoff", type=float, default=None, help="Maximum backoff cap in seconds (overrides TODO_RANK_MAX_BACKOFF env)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.workers is not None and args.workers < 1:
        parser.error('--workers must be at least 1')
    if args.lookback_days is not None and args.lookback_days < 1:
        parser.error('--lookback-days must be at least 1')

    # CLI flags take precedence over environment variables
    configure_retry(max_retries=args.max_retries, backoff_base=args.backoff_base, backoff_jitter=args.backoff_jitter, max_backoff=args.max_backoff)
    _resolve_connection(args, parser)

    try:
        rendered = run_pipeline(args)
    except TodoRankError as ex:
        # no partial table: a ranking missing items would be misleading
        logger.debug("run aborted", exc_info=True)
        print(f"Error: {ex}", file=sys.stderr)
        return 1
    write_output(rendered, args.out_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
