# tests/models/test_node_and_batch.py

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from nodecycler.models.batch import RetirementBatch
from nodecycler.models.node import CYCLE_ORDER, Node, Role
from nodecycler.models.run import PollPolicy, RunConfig


@pytest.mark.parametrize(
    "name, instance",
    [
        ("gke-prod-workers-1a2b.c.my-project.internal", "gke-prod-workers-1a2b"),
        ("master-0", "master-0"),
    ],
)
def test_instance_name_strips_domain_suffix(name, instance):
    assert Node(name=name).instance_name == instance


def test_node_is_immutable():
    node = Node(name="worker-1", role=Role.WORKER)

    with pytest.raises(ValidationError):
        node.retiring = "20261019101500"


def test_mint_uses_utc_timestamp():
    batch = RetirementBatch.mint(Role.WORKER, now=datetime(2026, 10, 19, 10, 15, 0, tzinfo=timezone.utc))

    assert batch.tag == "20261019101500"
    assert batch.role == Role.WORKER


def test_mint_without_clock_produces_valid_tag():
    batch = RetirementBatch.mint(Role.MASTER)

    assert len(batch.tag) == 14
    assert batch.tag.isdigit()


def test_batch_selector():
    batch = RetirementBatch(role=Role.MASTER, tag="20261019101500")

    assert batch.selector("role", "retiring") == "role=master,retiring=20261019101500"


def test_batch_is_immutable():
    batch = RetirementBatch(role=Role.WORKER, tag="20261019101500")

    with pytest.raises(ValidationError):
        batch.tag = "20261020000000"


@pytest.mark.parametrize("tag", ["", "has space", "-leading", "trailing.", "x" * 64, "a,b"])
def test_batch_rejects_invalid_label_values(tag):
    with pytest.raises(ValidationError):
        RetirementBatch(role=Role.WORKER, tag=tag)


def test_run_config_roles():
    assert CYCLE_ORDER == (Role.MASTER, Role.WORKER)
    assert RunConfig(project="p").roles == list(CYCLE_ORDER)
    assert RunConfig(project="p", role=Role.WORKER).roles == [Role.WORKER]


def test_poll_policy_defaults_to_unbounded_wait():
    policy = PollPolicy()

    assert policy.interval == 32
    assert policy.deadline is None
