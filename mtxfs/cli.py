"""Dump an XFS document (or just its schema table) as JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from mtxfs.config import ReaderConfig
from mtxfs.dti import TypeRegistry
from mtxfs.errors import DecodeError
from mtxfs.reader import XFSReader
from mtxfs.schema import ObjectInfo


def setup_logging(verbose: bool = False) -> None:
    log_fmt = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=log_fmt, datefmt=datefmt, stream=sys.stderr)


def schema_to_plain(table: list[ObjectInfo]) -> list[dict]:
    return [
        {
            "index": i,
            "type": info.type.name,
            "hash": f"0x{info.type.hash:08x}",
            "properties": [
                {
                    "name": p.name,
                    "type": p.type_label,
                    "attr": p.attr_flags,
                    "size": p.declared_size,
                    "dynamic": p.is_dynamic,
                    "disabled": p.is_disabled,
                }
                for p in info.properties
            ],
        }
        for i, info in enumerate(table)
    ]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mtxfs", description=__doc__)
    ap.add_argument("file", type=Path, help="XFS document")
    ap.add_argument("--schema", action="store_true", help="print the schema table only")
    ap.add_argument("--registry", type=Path, default=None, help="DTI JSON-lines file")
    ap.add_argument("--indent", type=int, default=2)
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    if not args.file.is_file():
        logging.error("No such file: %s", args.file)
        return 2

    try:
        config = ReaderConfig.from_env()
        if args.registry is not None:
            config = ReaderConfig(
                registry=TypeRegistry.load(args.registry), max_depth=config.max_depth
            )
    except (OSError, ValueError) as e:
        logging.error("Bad configuration: %s", e)
        return 2

    try:
        with XFSReader.open(args.file, config) as reader:
            if args.schema:
                out = schema_to_plain(reader.schema())
            else:
                out = reader.deserialize().to_dict()
    except DecodeError as e:
        logging.error("%s: %s", args.file, e)
        return 1

    json.dump(out, sys.stdout, indent=args.indent, ensure_ascii=False, allow_nan=False)
    sys.stdout.write("\n")
    return 0
