"""CLI interface for static metadata dumps."""

import argparse
import sys
from typing import List, Optional

import yaml

from .common.config import MirrorCoreConfig, load_typed_config
from .common.logger import setup_from_config
from .packages.acl import PackagesAclChecker
from .packages.dumper import MetadataDumper
from .packages.memory import load_catalog
from .packages.urls import RouteUrlGenerator
from .packages.writer import StaticDumpWriter


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="composer_mirror")
    subcommands = parser.add_subparsers(dest="command", required=True)

    dump = subcommands.add_parser("dump", help="Write repository metadata for a catalog")
    dump.add_argument("--catalog", required=True, help="YAML package catalog")
    dump.add_argument("--output", help="Output directory (defaults to config output_dir)")
    dump.add_argument("--config", help="YAML configuration file")
    dump.add_argument("--gzip", action="store_true", help="Also write .gz files")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the dump CLI."""
    args = build_parser().parse_args(argv)

    try:
        config = load_typed_config(args.config) if args.config else MirrorCoreConfig()
        store = load_catalog(args.catalog)
    except (FileNotFoundError, TypeError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_from_config(config.logging)

    dumper = MetadataDumper(
        store,
        PackagesAclChecker(),
        RouteUrlGenerator(config.routes, config.base_url),
        config.metadata,
    )
    result = dumper.dump()

    writer = StaticDumpWriter(
        args.output or config.output_dir,
        gzip_level=config.metadata.gzip_level if args.gzip else 0,
    )
    written = writer.write(result)

    print(f"Packages: {len(result.packages)}")
    print(f"Files written: {len(written)}")
    print(f"Providers hash: {result.providers.hash()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
