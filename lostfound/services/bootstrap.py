"""Wiring of the workflow service from settings."""

import logging
from typing import Optional

from lostfound.common.config import load_typed_config
from lostfound.core.config import Settings, get_settings
from lostfound.core.routing.engine import RoutingEngine
from lostfound.core.workflow.service import WorkflowService
from lostfound.db.repositories import SqlApproverDirectory, SqlRequestStore
from lostfound.db.seed import seed_approvers
from lostfound.db.session import init_db, make_engine
from lostfound.services.notifications import TransitionNotifier

logger = logging.getLogger(__name__)


def build_workflow_service(
    settings: Optional[Settings] = None,
    *,
    notifier: Optional[TransitionNotifier] = None,
) -> WorkflowService:
    """
    Build a SQL-backed service.

    Creates missing tables, seeds the approver directory from
    ``directory_config_path`` when set, and rebuilds the workload counters
    from stored in-flight requests. Values in the YAML file override the
    matching settings.
    """
    settings = settings or get_settings()

    session_factory = init_db(make_engine(settings.database_url, echo=settings.debug))
    directory = SqlApproverDirectory(session_factory)

    allow_scope_fallback = settings.allow_scope_fallback
    threshold = settings.sla_approaching_threshold_hours
    if settings.directory_config_path:
        config = load_typed_config(settings.directory_config_path)
        seed_approvers(directory, config)
        allow_scope_fallback = allow_scope_fallback or config.routing.allow_scope_fallback
        if config.sla_approaching_threshold_hours is not None:
            threshold = config.sla_approaching_threshold_hours

    service = WorkflowService(
        SqlRequestStore(session_factory),
        RoutingEngine(directory, allow_scope_fallback=allow_scope_fallback),
        notifier=notifier,
        approaching_threshold_hours=threshold,
    )
    service.resync_workload()

    logger.info("Workflow service ready (%d approvers, database: %s)", len(directory), settings.database_url)
    return service
