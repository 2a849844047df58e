"""
Index the product catalog into the vector store.

Usage:
    python -m compare_bot.index_products [--fresh]
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from .config import get_config
from .data_fetchers.catalog import all_products
from .data_fetchers.vector_search import VectorProductSearch
from .logging_setup import setup_logging

log = logging.getLogger(__name__)


def index_catalog(search: VectorProductSearch, fresh: bool = False) -> int:
    if fresh:
        log.info("INDEX_FRESH | dropping existing collection")
        search.clear()
    return search.index_catalog(all_products())


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Index catalog products for semantic retrieval.")
    parser.add_argument("--fresh", action="store_true", help="drop the collection before indexing")
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging()
    cfg = get_config()

    search = VectorProductSearch(cfg.VECTOR_STORE_PATH, cfg.EMBEDDING_MODEL)
    count = index_catalog(search, fresh=args.fresh)
    print(f"Indexed {count} products into {cfg.VECTOR_STORE_PATH} (total in collection: {search.count()})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
