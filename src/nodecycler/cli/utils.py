# src/nodecycler/cli/utils.py
import logging
import re
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..core.config import config
from ..core.exceptions import ConfigurationError
from ..models.batch import RetirementBatch
from ..models.node import Role
from ..models.run import PollPolicy, RunConfig

logger = logging.getLogger(__name__)

# kubeconfig contexts created by 'gcloud container clusters get-credentials'
GKE_CONTEXT_RE = re.compile(r"^gke_(?P<project>[a-z][-a-z0-9]*)_(?P<location>[^_]+)_(?P<cluster>.+)$")


def validate_context_project(context: Optional[str], project: Optional[str]) -> None:
    """
    Checks that a project is given and, for GKE-style contexts, that the
    context belongs to that project.
    """
    if not project:
        raise ConfigurationError("A GCP project is required (--project or GCP_PROJECT).")
    if context:
        match = GKE_CONTEXT_RE.match(context)
        if match and match.group("project") != project:
            raise ConfigurationError(
                f"Context '{context}' belongs to project '{match.group('project')}', not '{project}'."
            )


def build_run_config(
    context: Optional[str],
    project: Optional[str],
    role: Optional[Role],
    resume: Optional[str],
    drain_timeout: Optional[int],
    poll_interval: Optional[float],
    poll_deadline: Optional[float],
) -> RunConfig:
    """
    Validates CLI input against the configuration and returns the RunConfig
    for the run.

    Raises:
        ConfigurationError: On any invalid combination of flags or settings.
    """
    context = context or config.KUBE_CONTEXT
    project = project or config.GCP_PROJECT
    validate_context_project(context, project)

    if resume and role is None:
        raise ConfigurationError("--resume requires --role.")
    if not resume and not config.has_access_token_source():
        raise ConfigurationError(
            "GCP_ACCESS_TOKEN or GCP_ACCESS_TOKEN_COMMAND must be set to resize and delete instances."
        )

    try:
        poll = PollPolicy(
            interval=poll_interval if poll_interval is not None else config.POLL_INTERVAL_SECONDS,
            deadline=poll_deadline if poll_deadline is not None else config.POLL_DEADLINE_SECONDS,
        )
        run = RunConfig(
            project=project,
            context=context,
            role=role,
            resume_tag=resume,
            drain_timeout=drain_timeout if drain_timeout is not None else config.DRAIN_TIMEOUT_SECONDS,
            poll=poll,
        )
        if resume:
            # Validates the tag as a label value.
            RetirementBatch(role=role, tag=resume)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options: {e}") from e
    return run


def add_log_file(path: Path) -> logging.Handler:
    """Sends a copy of every log record to `path`."""
    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
    logging.getLogger().addHandler(handler)
    logger.info("Also logging to %s", path)
    return handler
