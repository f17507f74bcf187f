"""
Cluster rollout orchestrator.

Sequences node group transitions across the whole declared topology of one
cluster, in a way that never takes more than one master-eligible group out of
service at a time:

1. Derive the topology (quorum, shard counts, ordered groups) from the
   declared resource
2. Visit groups in role-priority order: create missing groups, roll out
   pending template drift on existing ones
3. Scale existing groups to their desired replica count; master-eligible
   scale-downs must keep a quorum of the previous master count
4. After a group was created, scaled or rolled out, wait for its nodes to
   rejoin the cluster before moving on
5. Scale down, wait out and delete workloads no longer in the topology
6. Collect per-group status flags and hand them to the status writer

A failure in a master-eligible group halts every later master-eligible group
for the rest of the pass; groups that are not master-eligible are still
visited. A master-eligible group found unpaused at the start of a pass (a
rollout that timed out earlier) is the only master-eligible group allowed to
progress until it is paused again. Failures are reported, never raised,
except for cancellation and an invalid topology.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from es_rollout_protocols import (
    BackendError,
    ClusterMembershipProtocol,
    PodTemplateBuilderProtocol,
    StatusWriterProtocol,
    Workload,
    WorkloadBackendProtocol,
    WorkloadKind,
)

from es_rollout_core.config import RolloutSettings
from es_rollout_core.errors import NodeGroupError, TopologyError, WaitCancelledError
from es_rollout_core.fingerprint import ConfigFingerprinter
from es_rollout_core.nodegroup import (
    SETTLED_PHASES,
    NodeGroup,
    NodeGroupPhase,
    NodeGroupStatus,
    TransitionObserver,
    new_node_group,
)
from es_rollout_core.topology import (
    ClusterTopology,
    GroupSpec,
    build_topology,
    cluster_selector,
    quorum,
    roles_from_labels,
)
from es_rollout_core.types import ElasticsearchCluster, ManagementState, NodeSpec

logger = logging.getLogger(__name__)


class GroupAction(str, Enum):
    """What the orchestrator did with a group during one pass."""

    CREATED = "created"
    SCALED = "scaled"
    ROLLED_OUT = "rolled_out"
    UNCHANGED = "unchanged"
    REMOVED = "removed"
    BLOCKED = "blocked"
    FAILED = "failed"


UNSETTLED_ACTIONS = frozenset({GroupAction.BLOCKED, GroupAction.FAILED})


@dataclass
class GroupOutcome:
    """
    Result of visiting one node group.

    Attributes:
        name: Node group name
        master_eligible: Whether the group holds the master role
        action: What was done
        phase: Group phase after the visit
        error: The failure, for FAILED and BLOCKED outcomes
    """

    name: str
    master_eligible: bool
    action: GroupAction
    phase: NodeGroupPhase
    error: Exception | None = None


@dataclass
class RolloutReport:
    """
    Result of one reconcile pass over a cluster.

    Attributes:
        cluster_name: Cluster that was reconciled
        namespace: Namespace of the cluster
        topology: Derived topology (None when the pass was skipped)
        outcomes: One outcome per visited or removed group
        statuses: Status flags per node group
        skipped: True if the cluster is not managed
        status_errors: Failures while collecting or writing statuses
    """

    cluster_name: str
    namespace: str
    topology: ClusterTopology | None = None
    outcomes: list[GroupOutcome] = field(default_factory=list)
    statuses: list[NodeGroupStatus] = field(default_factory=list)
    skipped: bool = False
    status_errors: list[Exception] = field(default_factory=list)

    @property
    def failed(self) -> list[GroupOutcome]:
        return [o for o in self.outcomes if o.action == GroupAction.FAILED]

    @property
    def blocked(self) -> list[GroupOutcome]:
        return [o for o in self.outcomes if o.action == GroupAction.BLOCKED]

    @property
    def ok(self) -> bool:
        return not self.failed and not self.blocked and not self.status_errors

    @property
    def scheduled_for_upgrade(self) -> bool:
        return any(s.scheduled_for_upgrade for s in self.statuses)

    @property
    def scheduled_for_cert_redeploy(self) -> bool:
        return any(s.scheduled_for_cert_redeploy for s in self.statuses)

    def outcome(self, name: str) -> GroupOutcome | None:
        return next((o for o in self.outcomes if o.name == name), None)


class ClusterRolloutOrchestrator:
    """
    Drives every node group of one cluster through its rollout.

    One orchestrator instance reconciles one cluster; a pass runs to
    completion before the next pass on the same cluster starts. Distinct
    clusters use distinct instances and share no mutable state.

    Example:
        orchestrator = ClusterRolloutOrchestrator(
            cluster=cluster,
            backend=backend,
            fingerprinter=fingerprinter,
            membership=membership,
            template_builder=builder,
        )
        report = await orchestrator.reconcile()
        for outcome in report.failed:
            print(f"{outcome.name}: {outcome.error}")
    """

    def __init__(
        self,
        cluster: ElasticsearchCluster,
        backend: WorkloadBackendProtocol,
        fingerprinter: ConfigFingerprinter,
        membership: ClusterMembershipProtocol,
        template_builder: PodTemplateBuilderProtocol,
        settings: RolloutSettings | None = None,
        status_writer: StatusWriterProtocol | None = None,
        stop: asyncio.Event | None = None,
        observer: TransitionObserver | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            cluster: Declared cluster resource
            backend: Workload backend
            fingerprinter: Bundle fingerprinter
            membership: Live cluster membership client
            template_builder: Renders the desired pod template per group
            settings: Wait and retry bounds
            status_writer: Optional sink for per-group statuses
            stop: Shutdown event interrupting waits
            observer: Called with (group, old_phase, new_phase) on transitions
        """
        self.cluster = cluster
        self.backend = backend
        self.fingerprinter = fingerprinter
        self.membership = membership
        self.template_builder = template_builder
        self.settings = settings or RolloutSettings()
        self.status_writer = status_writer
        self._stop = stop
        self._observer = observer

        # Master-eligible groups currently outside Paused/Missing
        self._unsettled_masters: set[str] = set()
        self._master_groups: set[str] = set()
        # Master replicas scaled away or removed during the current pass
        self._removed_masters = 0

    def _on_transition(
        self, group: str, old: NodeGroupPhase, new: NodeGroupPhase
    ) -> None:
        if group in self._master_groups:
            if new in SETTLED_PHASES:
                self._unsettled_masters.discard(group)
            else:
                others = self._unsettled_masters - {group}
                if others:
                    logger.error(
                        f"Master-eligible group {group} entered {new.value} while "
                        f"{sorted(others)} are not settled"
                    )
                self._unsettled_masters.add(group)
        if self._observer is not None:
            self._observer(group, old, new)

    def _new_group(self, spec: GroupSpec, template) -> NodeGroup:
        if spec.is_master_eligible:
            self._master_groups.add(spec.name)
        return new_node_group(
            spec,
            template,
            self.backend,
            self.fingerprinter,
            self.membership,
            settings=self.settings,
            stop=self._stop,
            observer=self._on_transition,
        )

    def build_groups(self, topology: ClusterTopology) -> list[NodeGroup]:
        """Create one node group per topology entry, in visiting order."""
        return [
            self._new_group(spec, self.template_builder.build(self.cluster, spec))
            for spec in topology.groups
        ]

    def _check_stop(self) -> None:
        if self._stop is not None and self._stop.is_set():
            raise WaitCancelledError(f"reconcile of cluster {self.cluster.name}")

    async def reconcile(self) -> RolloutReport:
        """
        Run one reconcile pass.

        Returns:
            RolloutReport with per-group outcomes and statuses.

        Raises:
            TopologyError: If the declared topology is invalid.
            WaitCancelledError: If shutdown was requested mid-pass.
        """
        report = RolloutReport(
            cluster_name=self.cluster.name, namespace=self.cluster.namespace
        )
        if self.cluster.spec.management_state == ManagementState.UNMANAGED:
            logger.info(f"Cluster {self.cluster.name} is unmanaged, skipping")
            report.skipped = True
            return report

        topology = build_topology(self.cluster)
        report.topology = topology
        logger.info(
            f"Reconciling cluster {self.cluster.name}: {len(topology.groups)} groups, "
            f"{topology.master_count} masters (quorum {topology.quorum})"
        )

        groups = self.build_groups(topology)
        master_chain_blocked = False
        self._removed_masters = 0
        holder = await self._unsettled_master_group(groups)

        for group in groups:
            self._check_stop()

            if group.is_master_eligible and (
                master_chain_blocked or (holder is not None and group is not holder)
            ):
                reason = (
                    "an earlier master group did not complete"
                    if master_chain_blocked
                    else f"master group {holder.name} is not paused"
                )
                logger.warning(f"Skipping master-eligible group {group.name}: {reason}")
                report.outcomes.append(
                    GroupOutcome(
                        name=group.name,
                        master_eligible=True,
                        action=GroupAction.BLOCKED,
                        phase=group.phase,
                    )
                )
                continue

            outcome = await self._visit(group, topology)
            report.outcomes.append(outcome)
            if group is holder and outcome.action not in UNSETTLED_ACTIONS:
                holder = None
            if outcome.action == GroupAction.FAILED and group.is_master_eligible:
                master_chain_blocked = True

        self._check_stop()
        masters_blocked = master_chain_blocked or holder is not None
        report.outcomes.extend(await self._remove_stale_groups(topology, masters_blocked))

        await self._collect_statuses(groups, report)
        return report

    async def _unsettled_master_group(self, groups: list[NodeGroup]) -> NodeGroup | None:
        """
        First master-eligible group whose workload exists but is not paused.

        A group whose workload cannot be read counts as unsettled, since its
        pause state is unknown.
        """
        for group in groups:
            if not group.is_master_eligible:
                continue
            try:
                observed = await group.refresh(track_phase=False)
            except NodeGroupError as e:
                logger.warning(f"Could not read master-eligible group {group.name}: {e}")
                return group
            if observed.exists and not observed.paused:
                logger.warning(
                    f"Master-eligible group {group.name} is not paused; other master "
                    f"groups wait until it settles"
                )
                return group
        return None

    async def _scale(self, group: NodeGroup, topology: ClusterTopology) -> bool:
        """
        Apply the desired replica count to an existing group.

        Returns:
            True if the replica count was changed.

        Raises:
            TopologyError: If a master-eligible scale-down would leave fewer
                masters than a quorum of the previous master count.
            NodeGroupError: On backend failure or leave timeout.
        """
        current = await group.configured_replicas()
        desired = group.spec.replicas
        if current == desired:
            return False

        if group.is_master_eligible and desired < current:
            removed = self._removed_masters + current - desired
            previous_masters = topology.master_count + removed
            if topology.master_count < quorum(previous_masters):
                raise TopologyError(
                    f"scaling {group.name} from {current} to {desired} leaves "
                    f"{topology.master_count} masters, below quorum "
                    f"{quorum(previous_masters)} of {previous_masters}"
                )
            self._removed_masters = removed

        logger.info(f"Scaling node group {group.name} from {current} to {desired} replicas")
        await group.scale_to_desired(current)
        return True

    async def _visit(self, group: NodeGroup, topology: ClusterTopology) -> GroupOutcome:
        """Create, scale or roll out one group, then wait for it to rejoin."""
        try:
            if await group.is_missing():
                await group.create()
                action = GroupAction.CREATED
            else:
                scaled = await self._scale(group, topology)
                if await group.progress_node_changes():
                    action = GroupAction.ROLLED_OUT
                elif scaled:
                    action = GroupAction.SCALED
                else:
                    action = GroupAction.UNCHANGED

            if action != GroupAction.UNCHANGED and group.spec.replicas > 0:
                await group.wait_for_node_rejoin_cluster()
        except TopologyError as e:
            logger.warning(f"Not scaling master-eligible group {group.name}: {e}")
            return GroupOutcome(
                name=group.name,
                master_eligible=group.is_master_eligible,
                action=GroupAction.BLOCKED,
                phase=group.phase,
                error=e,
            )
        except NodeGroupError as e:
            logger.error(f"Node group {group.name} failed: {e}")
            return GroupOutcome(
                name=group.name,
                master_eligible=group.is_master_eligible,
                action=GroupAction.FAILED,
                phase=group.phase,
                error=e,
            )

        return GroupOutcome(
            name=group.name,
            master_eligible=group.is_master_eligible,
            action=action,
            phase=group.phase,
        )

    async def _list_cluster_workloads(self) -> list[Workload]:
        workloads: list[Workload] = []
        for kind in WorkloadKind:
            workloads.extend(
                await self.backend.list(
                    kind, self.cluster.namespace, cluster_selector(self.cluster.name)
                )
            )
        return workloads

    def _group_for_workload(self, workload: Workload) -> NodeGroup:
        roles = roles_from_labels(workload.labels)
        spec = GroupSpec(
            name=workload.name,
            cluster_name=self.cluster.name,
            namespace=workload.namespace,
            kind=workload.kind,
            replicas=workload.replicas,
            roles=roles,
            node=NodeSpec(roles=sorted(roles), node_count=workload.replicas),
        )
        return self._new_group(spec, workload.template)

    async def _remove_stale_groups(
        self, topology: ClusterTopology, master_chain_blocked: bool
    ) -> list[GroupOutcome]:
        """
        Remove workloads of this cluster that the topology no longer names.

        Each stale group is scaled to zero, waited out of the cluster and
        deleted. Master-eligible removals are refused while the master chain
        is blocked, or when the remaining masters would not form a quorum of
        the master count before removal.
        """
        try:
            workloads = await self._list_cluster_workloads()
        except BackendError as e:
            logger.error(f"Could not list workloads of cluster {self.cluster.name}: {e}")
            return []

        wanted = set(topology.group_names)
        stale = [self._group_for_workload(w) for w in workloads if w.name not in wanted]
        if not stale:
            return []

        previous_masters = topology.master_count + self._removed_masters + sum(
            g.spec.replicas for g in stale if g.is_master_eligible
        )
        quorum_kept = topology.master_count >= quorum(previous_masters)

        outcomes: list[GroupOutcome] = []
        for group in stale:
            self._check_stop()
            if group.is_master_eligible and (master_chain_blocked or not quorum_kept):
                reason = (
                    "master chain is blocked"
                    if master_chain_blocked
                    else f"{topology.master_count} remaining masters are below quorum "
                    f"{quorum(previous_masters)} of {previous_masters}"
                )
                logger.warning(f"Not removing master-eligible group {group.name}: {reason}")
                outcomes.append(
                    GroupOutcome(
                        name=group.name,
                        master_eligible=True,
                        action=GroupAction.BLOCKED,
                        phase=group.phase,
                        error=TopologyError(reason),
                    )
                )
                continue

            try:
                replicas = group.spec.replicas
                await group.scale_down()
                await group.wait_for_node_leave_cluster(replicas)
                await group.delete()
            except NodeGroupError as e:
                logger.error(f"Removing node group {group.name} failed: {e}")
                outcomes.append(
                    GroupOutcome(
                        name=group.name,
                        master_eligible=group.is_master_eligible,
                        action=GroupAction.FAILED,
                        phase=group.phase,
                        error=e,
                    )
                )
                if group.is_master_eligible:
                    master_chain_blocked = True
                continue

            outcomes.append(
                GroupOutcome(
                    name=group.name,
                    master_eligible=group.is_master_eligible,
                    action=GroupAction.REMOVED,
                    phase=group.phase,
                )
            )
        return outcomes

    async def _collect_statuses(self, groups: list[NodeGroup], report: RolloutReport) -> None:
        for group in groups:
            try:
                report.statuses.append(await group.state())
            except NodeGroupError as e:
                logger.error(f"Could not determine status of node group {group.name}: {e}")
                report.status_errors.append(e)

        if self.status_writer is None:
            return
        try:
            await self.status_writer.write(self.cluster, report.statuses)
        except BackendError as e:
            logger.error(f"Could not write status of cluster {self.cluster.name}: {e}")
            report.status_errors.append(e)
