"""
Index Rebuild Script for the Chapter Context API.

This script:
1. Lists the chapter files of a project
2. Chunks every chapter and extracts keywords
3. Writes the project's index snapshot

Usage:
    python ingest_documents.py <project_id> [--base-path PATH]
"""
import argparse
import sys
import logging
from pathlib import Path
from typing import List, Optional

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.chunk_index import ChunkIndex
from config import RUNTIME_BASE_PATH

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild the chunk index of a writing project")
    parser.add_argument("project_id", help="Project directory name under the base path")
    parser.add_argument(
        "--base-path",
        default=RUNTIME_BASE_PATH,
        help=f"Runtime base path holding the projects (default: {RUNTIME_BASE_PATH})"
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main rebuild process. Returns the process exit code."""
    args = parse_args(argv)
    try:
        logger.info("=" * 60)
        logger.info(f"Rebuilding index for project {args.project_id}")
        logger.info("=" * 60)

        index = ChunkIndex(args.base_path)
        if not index.document_loader.has_chapters_dir(args.project_id):
            logger.error(
                f"No chapters found! Check that {index.document_loader.chapters_dir(args.project_id)} exists"
            )
            return 1

        index.rebuild_project_index(args.project_id)
        stats = index.get_stats(args.project_id)

        logger.info(f"Chapters indexed: {stats['indexed_chapters']}")
        logger.info(f"Total chunks created: {stats['total_chunks']}")
        logger.info(f"Snapshot: {index.snapshot_path(args.project_id)}")
        logger.info("=" * 60)
        return 0

    except KeyboardInterrupt:
        logger.warning("Rebuild interrupted by user")
        return 1
    except Exception as e:
        logger.error(f"Rebuild failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
