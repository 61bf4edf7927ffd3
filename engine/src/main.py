"""
Shipline engine - main entry point.
"""

import logging
import sys

from engine.src.config import get_settings
from engine.src.services.definition_loader import load_definition, PipelineConfigError
from engine.src.services.status_reporter import get_run_store
from engine.src.worker import run_worker

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

def main():
    """Main entry point."""
    settings = get_settings()

    logger.info("Starting Shipline engine")
    logger.info(f"Workflow: {settings.workflow_path}")
    logger.info(f"Max concurrent runs: {settings.max_concurrent_runs}")

    # Refuse to start on a broken workflow
    try:
        definition = load_definition(settings.workflow_path)
    except PipelineConfigError as e:
        logger.error(f"Invalid workflow: {e}")
        sys.exit(1)

    triggers = ", ".join(
        f"{rule.kind.value}[{', '.join(rule.branches) or '*'}]" for rule in definition.triggers
    )
    logger.info(f"Loaded '{definition.name}' with {len(definition.steps)} steps, triggers: {triggers}")

    try:
        get_run_store().create_tables()
    except Exception as e:
        logger.error(f"Failed to prepare database: {e}")
        sys.exit(1)

    logger.info("Starting worker...")
    run_worker()

if __name__ == "__main__":
    main()
