import argparse, logging, os, sys
from datetime import timedelta

from dotenv import load_dotenv

from .aggregate import write_listing
from .crawl import REPAIR_CONCURRENCY, Crawler, CrawlConfig, check_sources, fetcher_from_env
from .directory import DirectoryError, load_directory, render_opml
from .entries import REPAIR_WINDOW
from .store import DynamoStore, MemoryStore, StoreError
from .utils import ConfigError, env_int, get_env, setup_logging

log = logging.getLogger("engblogs")


def dynamo_store() -> DynamoStore:
    return DynamoStore(get_env('DYNAMODB_TABLE_NAME'), region=os.getenv('AWS_DEFAULT_REGION'))


def cmd_crawl(args) -> int:
    sources = load_directory(args.opml)
    store = MemoryStore() if args.dry_run else dynamo_store()
    config = CrawlConfig.from_env(
        store,
        concurrency=args.concurrency,
        recency_window=timedelta(days=args.days) if args.days else None,
    )
    Crawler(config).run(sources)
    if args.dry_run:
        log.info("Dry run: %d entries would have been stored", len(store))
    # individual feed failures are in the log, never in the exit status
    return 0


def cmd_repair(args) -> int:
    sources = load_directory(args.opml)
    concurrency = env_int('REPAIR_CONCURRENCY', REPAIR_CONCURRENCY)
    alive = check_sources(
        sources,
        fetcher_from_env(pool_size=concurrency),
        concurrency=concurrency,
        window=timedelta(days=env_int('REPAIR_RECENT_DAYS', REPAIR_WINDOW.days)),
    )
    opml = render_opml(alive)
    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(opml)
        log.info("Wrote %s", args.output)
    else:
        sys.stdout.write(opml)
    return 0


def cmd_build(args) -> int:
    output_dir = args.output_dir or os.getenv('OUTPUT_DIR', 'public')
    write_listing(dynamo_store(), output_dir)
    return 0


def _parse_args(argv=None):
    p = argparse.ArgumentParser(prog='engblogs', description="Engineering blogs crawler")
    p.add_argument("--debug", action="store_true", help="Verbose debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("crawl", help="Fetch every feed once and store recent entries")
    c.add_argument("--opml", default=None, help="OPML/YAML path or URL (default: OPML_LOCATION)")
    c.add_argument("--concurrency", type=int, default=None, help="Override CRAWL_CONCURRENCY")
    c.add_argument("--days", type=int, default=None, help="Override RECENT_DAYS")
    c.add_argument("--dry-run", action="store_true", help="Keep entries in memory instead of DynamoDB")
    c.set_defaults(func=cmd_crawl)

    r = sub.add_parser("repair", help="Write an OPML of the feeds that still load")
    r.add_argument("--opml", default=None, help="OPML/YAML path or URL (default: OPML_LOCATION)")
    r.add_argument("--output", "-o", default=None, help="Output file (default: stdout)")
    r.set_defaults(func=cmd_repair)

    b = sub.add_parser("build", help="Write entries.json from the store")
    b.add_argument("--output-dir", default=None, help="Override OUTPUT_DIR")
    b.set_defaults(func=cmd_build)

    return p.parse_args(argv)


def main(argv=None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    setup_logging("DEBUG" if args.debug else None)

    try:
        return args.func(args)
    except (DirectoryError, ConfigError, StoreError) as e:
        log.error("%s", e)
        return 1


if __name__ == '__main__':
    sys.exit(main())
