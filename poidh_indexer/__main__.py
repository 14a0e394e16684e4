"""Entry point for applying decoded event files"""
import json
import logging
import os
import sys
import traceback
from pathlib import Path
from typing import Iterator

from poidh_indexer.config import settings
from poidh_indexer.db import db
from poidh_indexer.dispatcher import EventDispatcher
from poidh_indexer.models.events import EventEnvelope

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
logger = logging.getLogger(__name__)

def read_events(input_dir: str) -> Iterator[EventEnvelope]:
    """
    Yield events from every *.jsonl file in the input directory.
    Files are read in name order, lines in file order.
    """
    for path in sorted(Path(input_dir).glob("*.jsonl")):
        logger.info(f"Reading events from {path}")
        with open(path, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield EventEnvelope.model_validate_json(line)
                except ValueError as e:
                    raise ValueError(f"{path}:{line_number}: invalid event: {e}") from e

def run() -> None:
    """Apply all input events and write a summary."""
    try:
        # Validate input directory
        if not os.path.isdir(settings.INPUT_DIR) or not os.listdir(settings.INPUT_DIR):
            raise FileNotFoundError(f"No input files found in {settings.INPUT_DIR}")

        # Log config (excluding sensitive data)
        safe_config = settings.model_dump(exclude={'DB_PASSWORD', 'DATABASE_URL'})
        logger.info("Using configuration:")
        logger.info(json.dumps(safe_config, indent=2))

        db.init()
        dispatcher = EventDispatcher.from_settings(db, settings)
        summary = dispatcher.dispatch_all(read_events(settings.INPUT_DIR), max_workers=settings.MAX_WORKERS)

        # Save results
        results = {
            'processed': summary.processed,
            'skipped': summary.skipped,
            'chains': {str(chain_id): counts for chain_id, counts in summary.per_chain.items()},
        }
        output_path = os.path.join(settings.OUTPUT_DIR, "results.json")
        with open(output_path, 'w') as f:
            json.dump(results, f, indent=2)

        logger.info(f"Event processing complete: {results}")

    except Exception as e:
        logger.error(f"Error during event processing: {e}")
        traceback.print_exc()
        sys.exit(1)
    finally:
        db.dispose()

if __name__ == "__main__":
    run()
