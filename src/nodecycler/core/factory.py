# src/nodecycler/core/factory.py
"""
Factory functions that wire the gateways, the drainer and the orchestrator
for one run configuration.
"""

import logging

from ..gateways.cluster import ClusterGateway
from ..gateways.fleet import FleetGateway
from ..models.run import RunConfig
from .config import config
from .drainer import NodeDrainer
from .orchestrator import CyclingOrchestrator
from .retry import RetryExecutor

logger = logging.getLogger(__name__)


def get_retry_executor() -> RetryExecutor:
    return RetryExecutor(max_attempts=config.RETRY_MAX_ATTEMPTS, delay=config.RETRY_DELAY_SECONDS)


def get_orchestrator(run: RunConfig) -> CyclingOrchestrator:
    """
    Builds a CyclingOrchestrator whose components all share one RetryExecutor
    and the given run configuration.
    """
    logger.info("Initializing gateways for project '%s' (context=%s)...", run.project, run.context or "current")
    retry = get_retry_executor()
    cluster = ClusterGateway(retry, context=run.context)
    fleet = FleetGateway(retry, project=run.project, poll=run.poll)
    drainer = NodeDrainer(cluster, timeout=run.drain_timeout)
    return CyclingOrchestrator(run, cluster=cluster, fleet=fleet, drainer=drainer)
