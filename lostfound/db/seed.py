"""Approver directory seeding.

Loads approver identities from the YAML configuration file into a
directory. Seeding is idempotent: identities already present are kept.
"""

import logging
from typing import Union

from lostfound.common.config import WorkflowConfig, load_typed_config, to_approver
from lostfound.core.routing.directory import InMemoryApproverDirectory
from lostfound.db.repositories import SqlApproverDirectory

logger = logging.getLogger(__name__)


def seed_approvers(
    directory: Union[InMemoryApproverDirectory, SqlApproverDirectory],
    config: WorkflowConfig,
) -> int:
    """
    Register every approver in ``config`` that the directory lacks.

    Returns:
        Number of identities added
    """
    existing = {a.approver_id for a in directory.find_all()}
    added = 0
    for entry in config.approvers:
        if entry.id in existing:
            continue
        directory.register(to_approver(entry))
        existing.add(entry.id)
        added += 1

    logger.info("Seeded %d approvers (%d already present)", added, len(config.approvers) - added)
    return added


def seed_approvers_from_file(
    directory: Union[InMemoryApproverDirectory, SqlApproverDirectory],
    config_path: str,
) -> int:
    """
    Seed a directory from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If an approver entry is invalid
    """
    return seed_approvers(directory, load_typed_config(config_path))
