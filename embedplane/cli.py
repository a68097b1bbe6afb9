"""Command-line front end for inspecting and editing embedding packs."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import Config
from .pack import PackError, dumps, read_pack_file, write_pack_file
from .session import Session

logger = logging.getLogger(__name__)


def load_session(path: Path) -> Session:
    session = Session()
    session.import_pack(read_pack_file(path), source=path.name)
    return session


def _emit(pack: dict, out: Optional[str]):
    if out:
        path = write_pack_file(out, pack)
        print(f"Saved {len(pack['items'])} items to {path}")
    else:
        print(dumps(pack))


def cmd_project(args: argparse.Namespace):
    session = load_session(Path(args.pack))
    basis = session.request_recompute()
    if basis.is_empty:
        print("Need at least 2 items for a projection.")
        return
    print(f"lambda1={basis.lambdas[0]:.6f} lambda2={basis.lambdas[1]:.6f}")
    for it, x, y in session.points():
        print(f"{it.id}\t{it.text}\t{x:+.4f}\t{y:+.4f}")


def cmd_neighbors(args: argparse.Namespace):
    session = load_session(Path(args.pack))
    if session.select(args.item) is None:
        raise PackError(f"Unknown item: {args.item}")
    for row in session.refresh_neighbors(limit=args.limit):
        print(f"{row.score:+.3f}\t{row.id}\t{row.text}")


def cmd_target(args: argparse.Namespace):
    session = load_session(Path(args.pack))
    if session.select(args.item) is None:
        raise PackError(f"Unknown item: {args.item}")
    if session.set_target_cosine(args.other, args.cos) is None:
        raise PackError(f"Cannot set cosine of {args.item} against {args.other}")
    _emit(session.export_pack(), args.output)


def cmd_seed(args: argparse.Namespace):
    session = Session(dim=args.dim, seed=args.seed)
    session.seed_demo()
    _emit(session.export_pack(), args.output)


def build_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="embedplane", description=__doc__)
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", default=None, help="JSON file of section.FIELD settings")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("project", help="Print the 2D PCA projection of a pack")
    p.add_argument("pack", help="Path to a pack JSON file")
    p.set_defaults(func=cmd_project)

    p = sub.add_parser("neighbors", help="Rank items by cosine similarity to one item")
    p.add_argument("pack")
    p.add_argument("--item", required=True, help="Focal item id")
    p.add_argument("--limit", type=int, default=None, help="Rows to show (default: neighbors.LIMIT)")
    p.set_defaults(func=cmd_neighbors)

    p = sub.add_parser("target", help="Rotate an item to a target cosine with another item")
    p.add_argument("pack")
    p.add_argument("--item", required=True, help="Item to edit")
    p.add_argument("--other", required=True, help="Reference item (left unchanged)")
    p.add_argument("--cos", type=float, required=True, help="Target cosine in [-1, 1]")
    p.add_argument("-o", "--output", default=None, help="Write the updated pack here")
    p.set_defaults(func=cmd_target)

    p = sub.add_parser("seed", help="Write a demo pack with random vectors")
    p.add_argument("--dim", type=int, default=None, help="Vector dimension (default: core.VECTOR_DIM)")
    p.add_argument("--seed", type=int, default=None, help="Random seed (default: core.SEED)")
    p.add_argument("-o", "--output", default=None)
    p.set_defaults(func=cmd_seed)
    return parser
def main(argv: Optional[List[str]] = None) -> None:
    args = build_argparser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if (args.verbose or Config.core.DEBUG) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.config:
            for key, (new, old) in Config.load_file(args.config).items():
                logger.info("config %s: %r -> %r", key, old, new)
        args.func(args)
    except (OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
