"""
Tests for the cluster rollout orchestrator.

Runs whole reconcile passes against the in-memory backend and membership
from conftest and checks ordering, master-group sequencing, failure
propagation, stale group removal and status write-back.
"""

import asyncio
from copy import deepcopy
from unittest.mock import AsyncMock

import pytest

from es_rollout_protocols import BackendError, WorkloadKind

from es_rollout_core.errors import TopologyError, WaitCancelledError
from es_rollout_core.nodegroup import SETTLED_PHASES
from es_rollout_core.orchestrator import ClusterRolloutOrchestrator, GroupAction

MASTERS = {"roles": ["master"], "nodeCount": 3}
CLIENTS = {"roles": ["client"], "nodeCount": 1}
DATA = {"roles": ["data"], "nodeCount": 1}


@pytest.fixture
def make_orchestrator(backend, fingerprinter, membership, builder, settings, recorder):
    def _make(cluster, **kwargs):
        return ClusterRolloutOrchestrator(
            cluster=cluster,
            backend=backend,
            fingerprinter=fingerprinter,
            membership=membership,
            template_builder=builder,
            settings=settings,
            observer=recorder,
            **kwargs,
        )

    return _make


def peak_unsettled_masters(transitions, masters: set[str]) -> int:
    unsettled: set[str] = set()
    peak = 0
    for group, _, new in transitions:
        if group not in masters:
            continue
        if new in SETTLED_PHASES:
            unsettled.discard(group)
        else:
            unsettled.add(group)
        peak = max(peak, len(unsettled))
    return peak


def peak_unpaused_workloads(backend, names: set[str], since: int) -> int:
    """Most master workloads unpaused at once across writes from history[since:]."""
    paused: dict[str, bool] = {}
    for workload in backend.history[:since]:
        paused[workload.name] = workload.is_paused
    peak = sum(1 for name in names if paused.get(name) is False)
    for workload in backend.history[since:]:
        paused[workload.name] = workload.is_paused
        peak = max(peak, sum(1 for name in names if paused.get(name) is False))
    return peak


class TestReconcile:
    """Tests for a full reconcile pass."""

    @pytest.mark.asyncio
    async def test_creates_groups_in_priority_order(self, make_orchestrator, make_cluster, backend):
        """Groups should be created dedicated masters first, clients last."""
        cluster = make_cluster(
            [CLIENTS, {"roles": ["client", "data", "master"], "nodeCount": 2}, MASTERS]
        )

        report = await make_orchestrator(cluster).reconcile()

        assert report.ok
        assert backend.creates == [
            "elasticsearch-m",
            "elasticsearch-cdm-1",
            "elasticsearch-cdm-2",
            "elasticsearch-c",
        ]
        assert all(o.action == GroupAction.CREATED for o in report.outcomes)
        assert report.topology.quorum == 3

    @pytest.mark.asyncio
    async def test_second_pass_is_unchanged(self, make_orchestrator, make_cluster, backend):
        """Reconciling an already converged cluster should change nothing."""
        cluster = make_cluster([MASTERS, CLIENTS])
        await make_orchestrator(cluster).reconcile()
        writes = len(backend.replaces)

        report = await make_orchestrator(cluster).reconcile()

        assert report.ok
        assert all(o.action == GroupAction.UNCHANGED for o in report.outcomes)
        assert len(backend.replaces) == writes
        assert not report.scheduled_for_upgrade

    @pytest.mark.asyncio
    async def test_image_change_rolled_out(self, make_orchestrator, make_cluster, backend):
        """A new image should be rolled out to every group."""
        nodes = [MASTERS, {"roles": ["client", "data"], "nodeCount": 2}]
        await make_orchestrator(make_cluster(nodes)).reconcile()

        report = await make_orchestrator(make_cluster(nodes, image="es:next")).reconcile()

        assert report.ok
        assert all(o.action == GroupAction.ROLLED_OUT for o in report.outcomes)
        assert not report.scheduled_for_upgrade
        for workload in backend.workloads.values():
            assert workload.template.containers[0].image == "es:next"
            assert workload.is_paused

    @pytest.mark.asyncio
    async def test_one_master_group_unsettled_at_a_time(
        self, make_orchestrator, make_cluster, recorder
    ):
        """No two master-eligible groups should be in flight simultaneously."""
        nodes = [MASTERS, {"roles": ["data", "master"], "nodeCount": 2}]
        await make_orchestrator(make_cluster(nodes)).reconcile()
        await make_orchestrator(make_cluster(nodes, image="es:next")).reconcile()

        masters = {"elasticsearch-m", "elasticsearch-dm-1", "elasticsearch-dm-2"}
        assert peak_unsettled_masters(recorder.transitions, masters) == 1

    @pytest.mark.asyncio
    async def test_unmanaged_cluster_skipped(self, make_orchestrator, make_cluster, backend):
        """An unmanaged cluster should not be touched."""
        cluster = make_cluster([MASTERS], managementState="Unmanaged")

        report = await make_orchestrator(cluster).reconcile()

        assert report.skipped
        assert report.topology is None
        assert backend.creates == []

    @pytest.mark.asyncio
    async def test_invalid_topology_raises(self, make_orchestrator, make_cluster):
        """A cluster without masters should be rejected."""
        with pytest.raises(TopologyError):
            await make_orchestrator(make_cluster([CLIENTS])).reconcile()

    @pytest.mark.asyncio
    async def test_stop_event_cancels_pass(self, make_orchestrator, make_cluster, backend):
        """A set stop event should abandon the pass before touching groups."""
        stop = asyncio.Event()
        stop.set()

        with pytest.raises(WaitCancelledError):
            await make_orchestrator(make_cluster([MASTERS]), stop=stop).reconcile()

        assert backend.creates == []


class TestFailurePropagation:
    """Tests for how group failures affect the rest of the pass."""

    @pytest.mark.asyncio
    async def test_master_failure_blocks_later_masters(
        self, make_orchestrator, make_cluster, membership, backend
    ):
        """Later master-eligible groups should be blocked, others still visited."""
        cluster = make_cluster(
            [MASTERS, {"roles": ["client", "data", "master"], "nodeCount": 2}, CLIENTS]
        )
        membership.absent.add("elasticsearch-m-1")

        report = await make_orchestrator(cluster).reconcile()

        assert not report.ok
        assert [o.name for o in report.failed] == ["elasticsearch-m"]
        assert [o.name for o in report.blocked] == ["elasticsearch-cdm-1", "elasticsearch-cdm-2"]
        assert report.outcome("elasticsearch-c").action == GroupAction.CREATED
        assert "elasticsearch-cdm-1" not in backend.creates
        assert report.failed[0].error.is_timeout

    @pytest.mark.asyncio
    async def test_non_master_failure_does_not_block(
        self, make_orchestrator, make_cluster, membership
    ):
        """A failing data group should not stop later groups."""
        cluster = make_cluster([MASTERS, DATA, CLIENTS])
        membership.absent.add("elasticsearch-d-1")

        report = await make_orchestrator(cluster).reconcile()

        assert [o.name for o in report.failed] == ["elasticsearch-d-1"]
        assert report.outcome("elasticsearch-m").action == GroupAction.CREATED
        assert report.outcome("elasticsearch-c").action == GroupAction.CREATED
        assert report.blocked == []

    @pytest.mark.asyncio
    async def test_statuses_collected_for_every_group(
        self, make_orchestrator, make_cluster, membership
    ):
        """Statuses should be reported even for failed and blocked groups."""
        cluster = make_cluster([MASTERS, {"roles": ["data", "master"], "nodeCount": 1}])
        membership.absent.add("elasticsearch-m-0")

        report = await make_orchestrator(cluster).reconcile()

        assert [s.name for s in report.statuses] == ["elasticsearch-m", "elasticsearch-dm-1"]
        assert report.scheduled_for_upgrade


class TestUnpausedMasterGroup:
    """Tests for a master group left unpaused by an earlier pass."""

    NODES = [MASTERS, {"roles": ["data", "master"], "nodeCount": 2}]
    MASTER_GROUPS = {"elasticsearch-m", "elasticsearch-dm-1", "elasticsearch-dm-2"}

    async def strand_dm_1(self, make_orchestrator, make_cluster, backend):
        await make_orchestrator(make_cluster(self.NODES)).reconcile()
        backend.hold_rollout.add("elasticsearch-dm-1")
        report = await make_orchestrator(make_cluster(self.NODES, image="es:2")).reconcile()
        assert report.outcome("elasticsearch-dm-1").action == GroupAction.FAILED
        assert not backend.stored(WorkloadKind.DEPLOYMENT, "elasticsearch-dm-1").is_paused

    @pytest.mark.asyncio
    async def test_unpaused_group_settles_before_other_masters(
        self, make_orchestrator, make_cluster, backend, recorder
    ):
        """Only the unpaused master group may progress until it is paused again."""
        await self.strand_dm_1(make_orchestrator, make_cluster, backend)
        backend.hold_rollout.clear()
        recorder.transitions.clear()
        since = len(backend.history)

        report = await make_orchestrator(make_cluster(self.NODES, image="es:3")).reconcile()

        assert report.outcome("elasticsearch-m").action == GroupAction.BLOCKED
        assert report.outcome("elasticsearch-dm-1").action == GroupAction.ROLLED_OUT
        assert report.outcome("elasticsearch-dm-2").action == GroupAction.ROLLED_OUT
        master = backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-m")
        assert master.template.containers[0].image == "es:2"
        assert master.is_paused
        assert peak_unsettled_masters(recorder.transitions, self.MASTER_GROUPS) == 1
        assert peak_unpaused_workloads(backend, self.MASTER_GROUPS, since) == 1

    @pytest.mark.asyncio
    async def test_blocked_master_catches_up_next_pass(
        self, make_orchestrator, make_cluster, backend
    ):
        """Once the unpaused group settled, the blocked master group rolls out."""
        await self.strand_dm_1(make_orchestrator, make_cluster, backend)
        backend.hold_rollout.clear()
        cluster = make_cluster(self.NODES, image="es:3")
        await make_orchestrator(cluster).reconcile()

        report = await make_orchestrator(cluster).reconcile()

        assert report.ok
        assert report.outcome("elasticsearch-m").action == GroupAction.ROLLED_OUT
        for workload in backend.workloads.values():
            assert workload.template.containers[0].image == "es:3"
            assert workload.is_paused

    @pytest.mark.asyncio
    async def test_still_stuck_group_keeps_other_masters_blocked(
        self, make_orchestrator, make_cluster, backend
    ):
        """While the unpaused group keeps failing, no other master group is touched."""
        await self.strand_dm_1(make_orchestrator, make_cluster, backend)
        since = len(backend.history)

        report = await make_orchestrator(make_cluster(self.NODES, image="es:3")).reconcile()

        assert report.outcome("elasticsearch-m").action == GroupAction.BLOCKED
        assert report.outcome("elasticsearch-dm-1").action == GroupAction.FAILED
        assert report.outcome("elasticsearch-dm-2").action == GroupAction.BLOCKED
        assert peak_unpaused_workloads(backend, self.MASTER_GROUPS, since) == 1


class TestScaling:
    """Tests for applying changed node counts to existing groups."""

    @pytest.mark.asyncio
    async def test_master_node_count_increase_applied(
        self, make_orchestrator, make_cluster, backend
    ):
        """A larger master node count should be written to the live workload."""
        await make_orchestrator(make_cluster([MASTERS])).reconcile()

        report = await make_orchestrator(
            make_cluster([{**MASTERS, "nodeCount": 5}])
        ).reconcile()

        assert report.ok
        assert report.outcome("elasticsearch-m").action == GroupAction.SCALED
        stored = backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-m")
        assert stored.replicas == 5
        assert stored.is_paused

    @pytest.mark.asyncio
    async def test_master_scale_down_keeping_quorum(
        self, make_orchestrator, make_cluster, backend, membership
    ):
        """Shrinking five masters to three should wait out the removed nodes."""
        await make_orchestrator(make_cluster([{**MASTERS, "nodeCount": 5}])).reconcile()

        report = await make_orchestrator(make_cluster([MASTERS])).reconcile()

        assert report.outcome("elasticsearch-m").action == GroupAction.SCALED
        assert backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-m").replicas == 3
        assert "elasticsearch-m-4" in membership.queries

    @pytest.mark.asyncio
    async def test_master_scale_down_below_quorum_refused(
        self, make_orchestrator, make_cluster, backend
    ):
        """Shrinking five masters to two should be refused."""
        await make_orchestrator(make_cluster([{**MASTERS, "nodeCount": 5}])).reconcile()

        report = await make_orchestrator(
            make_cluster([{**MASTERS, "nodeCount": 2}])
        ).reconcile()

        outcome = report.outcome("elasticsearch-m")
        assert outcome.action == GroupAction.BLOCKED
        assert isinstance(outcome.error, TopologyError)
        assert backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-m").replicas == 5

    @pytest.mark.asyncio
    async def test_client_scale_down(self, make_orchestrator, make_cluster, backend):
        """Client groups should shrink without a quorum check."""
        await make_orchestrator(make_cluster([MASTERS, {**CLIENTS, "nodeCount": 3}])).reconcile()

        report = await make_orchestrator(make_cluster([MASTERS, CLIENTS])).reconcile()

        assert report.outcome("elasticsearch-c").action == GroupAction.SCALED
        assert backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-c").replicas == 1

    @pytest.mark.asyncio
    async def test_scale_and_image_change_together(
        self, make_orchestrator, make_cluster, backend
    ):
        """A pass with both changes should scale first, then roll out."""
        await make_orchestrator(make_cluster([MASTERS])).reconcile()

        report = await make_orchestrator(
            make_cluster([{**MASTERS, "nodeCount": 5}], image="es:next")
        ).reconcile()

        assert report.outcome("elasticsearch-m").action == GroupAction.ROLLED_OUT
        stored = backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-m")
        assert stored.replicas == 5
        assert stored.template.containers[0].image == "es:next"
        assert stored.is_paused


class TestStaleGroups:
    """Tests for removal of groups no longer in the topology."""

    @pytest.mark.asyncio
    async def test_removed_group_deleted(self, make_orchestrator, make_cluster, backend):
        """A group dropped from the resource should be scaled down and deleted."""
        await make_orchestrator(make_cluster([MASTERS, CLIENTS])).reconcile()

        report = await make_orchestrator(make_cluster([MASTERS])).reconcile()

        assert report.outcome("elasticsearch-c").action == GroupAction.REMOVED
        assert backend.deletes == ["elasticsearch-c"]
        assert (WorkloadKind.STATEFUL_SET, "logging", "elasticsearch-c") not in backend.workloads

    @pytest.mark.asyncio
    async def test_master_removal_keeping_quorum(self, make_orchestrator, make_cluster, backend):
        """Removing one of three masters should be allowed."""
        cdm = {"roles": ["client", "data", "master"]}
        await make_orchestrator(make_cluster([{**cdm, "nodeCount": 3}])).reconcile()

        report = await make_orchestrator(make_cluster([{**cdm, "nodeCount": 2}])).reconcile()

        assert report.outcome("elasticsearch-cdm-3").action == GroupAction.REMOVED
        assert backend.deletes == ["elasticsearch-cdm-3"]

    @pytest.mark.asyncio
    async def test_master_removal_below_quorum_refused(
        self, make_orchestrator, make_cluster, backend
    ):
        """Removing two of three masters at once should be refused."""
        cdm = {"roles": ["client", "data", "master"]}
        await make_orchestrator(make_cluster([{**cdm, "nodeCount": 3}])).reconcile()

        report = await make_orchestrator(make_cluster([{**cdm, "nodeCount": 1}])).reconcile()

        assert {o.name for o in report.blocked} == {"elasticsearch-cdm-2", "elasticsearch-cdm-3"}
        assert backend.deletes == []

    @pytest.mark.asyncio
    async def test_other_clusters_untouched(self, make_orchestrator, make_cluster, backend):
        """Workloads of another cluster in the namespace should be left alone."""
        await make_orchestrator(make_cluster([MASTERS])).reconcile()
        foreign = deepcopy(backend.stored(WorkloadKind.STATEFUL_SET, "elasticsearch-m"))
        foreign.name = "other-m"
        foreign.labels = {**foreign.labels, "cluster-name": "other", "node-name": "other-m"}
        foreign.template.labels = dict(foreign.labels)
        backend.put(foreign)

        report = await make_orchestrator(make_cluster([MASTERS])).reconcile()

        assert report.outcome("other-m") is None
        assert backend.deletes == []


class TestStatusWriteBack:
    """Tests for handing statuses to the status writer."""

    @pytest.mark.asyncio
    async def test_statuses_written(self, make_orchestrator, make_cluster):
        """The writer should receive one status per group."""
        writer = AsyncMock()
        cluster = make_cluster([MASTERS, CLIENTS])

        report = await make_orchestrator(cluster, status_writer=writer).reconcile()

        writer.write.assert_awaited_once()
        written_cluster, statuses = writer.write.await_args.args
        assert written_cluster is cluster
        assert [s.name for s in statuses] == ["elasticsearch-m", "elasticsearch-c"]
        assert report.ok

    @pytest.mark.asyncio
    async def test_write_failure_recorded(self, make_orchestrator, make_cluster):
        """A failing status write should be reported, not raised."""
        writer = AsyncMock()
        writer.write.side_effect = BackendError("status patch rejected", "Elasticsearch")

        report = await make_orchestrator(
            make_cluster([MASTERS]), status_writer=writer
        ).reconcile()

        assert len(report.status_errors) == 1
        assert not report.ok
