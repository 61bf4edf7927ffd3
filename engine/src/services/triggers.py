"""
Trigger evaluation: decide whether an event starts a run.
"""

import logging

from engine.src.models.definition import PipelineDefinition
from engine.src.models.event import TriggerEvent

logger = logging.getLogger(__name__)

def should_run(definition: PipelineDefinition, event: TriggerEvent) -> bool:
    """
    True when the event kind is configured and its branch is listed.
    Branch names are compared literally; a rule with no branches matches all.
    """
    for rule in definition.triggers:
        if rule.kind != event.kind:
            continue
        if not rule.branches or event.branch in rule.branches:
            return True

    logger.debug(f"No trigger for {event.kind.value} on '{event.branch}'")
    return False
