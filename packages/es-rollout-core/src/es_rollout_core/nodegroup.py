"""
Node group rollout state machine.

A NodeGroup drives one homogeneous set of search-engine nodes, backed by one
replica-managed workload, through staged rollouts:

    Missing -> Creating -> Paused
    Paused -> UpdatePending -> RollingOut -> Paused (-> RejoinPending)

Template drift is staged while the workload is paused and only released by an
explicit unpause, so a change never reaches running nodes until the
orchestrator decides it is this group's turn.

Observed state (pause flag, replicas, revision token and recorded bundle
fingerprints) is always re-read from the backend before a decision; nothing
is carried over in memory between reconcile passes. Recorded fingerprints are
persisted as annotations on the workload itself.

Two variants share one capability set:
- DeploymentNodeGroup: pause is the deployment pause flag, the revision token
  is the deployment revision
- StatefulSetNodeGroup: pause is a rolling-update partition at or above the
  replica count, the revision token is the update revision
"""

import asyncio
import functools
import logging
from collections.abc import Callable
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from es_rollout_protocols import (
    AlreadyExistsError,
    BackendError,
    BundleKind,
    BundleRef,
    ClusterMembershipProtocol,
    NotFoundError,
    ObjectKey,
    OperationResult,
    PodSpec,
    Workload,
    WorkloadBackendProtocol,
    WorkloadKind,
)

from es_rollout_core.compare import pod_specs_differ, templates_differ, updatable_template
from es_rollout_core.config import RolloutSettings
from es_rollout_core.errors import NodeGroupError, RolloutError, WaitCancelledError
from es_rollout_core.fingerprint import (
    ConfigFingerprinter,
    FingerprintDecision,
    compare_fingerprints,
)
from es_rollout_core.retry import update_with_retry
from es_rollout_core.topology import GroupSpec
from es_rollout_core.wait import poll_until

logger = logging.getLogger(__name__)

CONFIG_FINGERPRINT_ANNOTATION = "elasticsearch.openshift.io/config-fingerprint"
CREDENTIAL_FINGERPRINT_ANNOTATION = "elasticsearch.openshift.io/credential-fingerprint"


class NodeGroupPhase(str, Enum):
    """Rollout state of a node group within one reconcile pass."""

    MISSING = "Missing"
    CREATING = "Creating"
    PAUSED = "Paused"
    UPDATE_PENDING = "UpdatePending"
    ROLLING_OUT = "RollingOut"
    REJOIN_PENDING = "RejoinPending"


SETTLED_PHASES = frozenset({NodeGroupPhase.MISSING, NodeGroupPhase.PAUSED})

TransitionObserver = Callable[[str, NodeGroupPhase, NodeGroupPhase], None]


@dataclass
class ObservedState:
    """
    Persisted state of a group's workload, as last read from the backend.

    Attributes:
        exists: False if the workload is absent.
        paused: Whether template changes are held back.
        replicas: Live replica count reported by the backend.
        revision: Backend template revision token.
        config_fingerprint: Last recorded configuration bundle fingerprint.
        credential_fingerprint: Last recorded credential bundle fingerprint.
        template: Live pod template.
    """

    exists: bool
    paused: bool = False
    replicas: int = 0
    revision: str = ""
    config_fingerprint: str = ""
    credential_fingerprint: str = ""
    template: PodSpec = field(default_factory=PodSpec)

    @classmethod
    def missing(cls) -> "ObservedState":
        return cls(exists=False)

    @classmethod
    def from_workload(cls, workload: Workload) -> "ObservedState":
        return cls(
            exists=True,
            paused=workload.is_paused,
            replicas=workload.status_replicas,
            revision=workload.revision,
            config_fingerprint=workload.annotations.get(CONFIG_FINGERPRINT_ANNOTATION, ""),
            credential_fingerprint=workload.annotations.get(
                CREDENTIAL_FINGERPRINT_ANNOTATION, ""
            ),
            template=workload.template,
        )


@dataclass
class NodeGroupStatus:
    """
    Externally visible upgrade status of one node group.

    Attributes:
        name: Node group name.
        phase: Phase at the time the status was taken.
        scheduled_for_upgrade: The live template differs from the desired one
            (or the workload is missing).
        scheduled_for_cert_redeploy: The credential bundle changed since its
            fingerprint was last recorded.
        config_changed: The configuration bundle changed since its fingerprint
            was last recorded.
        credential_bundle_missing: A fingerprint was recorded but the
            credential bundle can no longer be read.
    """

    name: str
    phase: NodeGroupPhase
    scheduled_for_upgrade: bool = False
    scheduled_for_cert_redeploy: bool = False
    config_changed: bool = False
    credential_bundle_missing: bool = False

    def conditions(self) -> dict[str, bool]:
        return {
            "scheduled-for-upgrade": self.scheduled_for_upgrade,
            "scheduled-for-cert-redeploy": self.scheduled_for_cert_redeploy,
        }


class NodeGroup:
    """
    Rollout state machine for one node group.

    Subclasses bind the variant-specific parts: how pause and replica count
    are written onto the workload, whether the workload is created paused,
    and which cluster node names the group's replicas carry.

    Example:
        group = new_node_group(spec, template, backend, fingerprinter, membership)
        if await group.is_missing():
            await group.create()
        else:
            await group.progress_node_changes()
        status = await group.state()
    """

    kind: ClassVar[WorkloadKind]
    paused_at_creation: ClassVar[bool]

    def __init__(
        self,
        spec: GroupSpec,
        template: PodSpec,
        backend: WorkloadBackendProtocol,
        fingerprinter: ConfigFingerprinter,
        membership: ClusterMembershipProtocol,
        settings: RolloutSettings | None = None,
        stop: asyncio.Event | None = None,
        observer: TransitionObserver | None = None,
    ) -> None:
        """
        Initialize a node group.

        Args:
            spec: Desired group layout from the topology
            template: Desired pod template for the group's nodes
            backend: Workload backend holding the persisted workload
            fingerprinter: Fingerprinter for the cluster's bundles
            membership: Live cluster membership client
            settings: Wait and retry bounds (defaults to RolloutSettings())
            stop: Shutdown event interrupting waits
            observer: Called with (group, old_phase, new_phase) on transitions
        """
        self.spec = spec
        self.template = template
        self.backend = backend
        self.fingerprinter = fingerprinter
        self.membership = membership
        self.settings = settings or RolloutSettings()
        self._stop = stop
        self._observer = observer

        self.phase = NodeGroupPhase.MISSING
        self.observed = ObservedState.missing()

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def cluster_name(self) -> str:
        return self.spec.cluster_name

    @property
    def namespace(self) -> str:
        return self.spec.namespace

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.name, self.namespace)

    @property
    def is_master_eligible(self) -> bool:
        return self.spec.is_master_eligible

    @property
    def config_ref(self) -> BundleRef:
        return BundleRef(self.cluster_name, self.namespace, BundleKind.CONFIG)

    @property
    def credential_ref(self) -> BundleRef:
        return BundleRef(self.cluster_name, self.namespace, BundleKind.CREDENTIAL)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.namespace}/{self.name}, phase={self.phase.value})"

    # -------------------------------------------------------------------------
    # Variant hooks
    # -------------------------------------------------------------------------

    def _apply_paused(self, workload: Workload, paused: bool) -> None:
        raise NotImplementedError

    def _apply_replicas(self, workload: Workload, replicas: int) -> None:
        raise NotImplementedError

    def member_names(self, replicas: int | None = None) -> list[str]:
        """Cluster node names of the group's replicas."""
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def desired_workload(self) -> Workload:
        """Build the desired workload object for this group."""
        workload = Workload(
            name=self.name,
            namespace=self.namespace,
            kind=self.kind,
            replicas=self.spec.replicas,
            template=deepcopy(self.template),
            labels=self.spec.labels,
        )
        workload.template.labels = {**workload.template.labels, **self.spec.labels}
        self._apply_paused(workload, self.paused_at_creation)
        return workload

    def _transition(self, phase: NodeGroupPhase) -> None:
        if phase == self.phase:
            return
        old, self.phase = self.phase, phase
        logger.debug(f"Node group {self.name}: {old.value} -> {phase.value}")
        if self._observer is not None:
            self._observer(self.name, old, phase)

    def _error(self, message: str, operation: str) -> NodeGroupError:
        return NodeGroupError(
            message,
            cluster=self.cluster_name,
            group=self.name,
            namespace=self.namespace,
            operation=operation,
        )

    async def _get(self) -> Workload:
        return await self.backend.get(self.kind, self.key)

    async def _update(
        self,
        compare: Callable[[Workload, Workload], bool],
        mutate: Callable[[Workload, Workload], None],
        operation: str,
    ) -> OperationResult:
        """Conditional update of the live workload through the retry primitive."""
        try:
            result = await update_with_retry(
                get=functools.partial(self.backend.get, self.kind),
                replace=self.backend.replace,
                key=self.key,
                desired=self.desired_workload(),
                compare=compare,
                mutate=mutate,
                retry=self.settings.retry_config(),
                kind=self.kind.value,
            )
        except BackendError as e:
            raise self._error(
                f"failed to update elasticsearch node {self.kind.value.lower()}", operation
            ) from e

        logger.info(
            f"Successfully reconciled elasticsearch node {self.kind.value.lower()}: "
            f"{result.value} ({operation}, node={self.name}, "
            f"cluster={self.cluster_name}, namespace={self.namespace})"
        )
        return result

    async def _wait(self, condition, timeout: float, description: str) -> None:
        await poll_until(
            condition,
            interval=self.settings.poll_interval_seconds,
            timeout=timeout,
            description=description,
            stop=self._stop,
        )

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def derive_phase(self, observed: ObservedState) -> NodeGroupPhase:
        """
        Phase implied by observed state alone.

        Missing if absent, RollingOut if unpaused, UpdatePending if paused
        with template drift, else Paused.
        """
        if not observed.exists:
            return NodeGroupPhase.MISSING
        if not observed.paused:
            return NodeGroupPhase.ROLLING_OUT
        if templates_differ(observed.template, self.desired_workload().template):
            return NodeGroupPhase.UPDATE_PENDING
        return NodeGroupPhase.PAUSED

    async def refresh(self, track_phase: bool = True) -> ObservedState:
        """
        Re-read the persisted workload into observed state.

        Args:
            track_phase: Move the group's phase to the one implied by the
                observation. Status reads pass False so that reporting never
                moves a group through the state machine.

        Raises:
            NodeGroupError: On backend failures other than not-found.
        """
        try:
            workload = await self._get()
        except NotFoundError:
            self.observed = ObservedState.missing()
        except BackendError as e:
            raise self._error("failed to get elasticsearch node workload", "refresh") from e
        else:
            self.observed = ObservedState.from_workload(workload)

        if track_phase:
            self._transition(self.derive_phase(self.observed))
        return self.observed

    async def is_missing(self) -> bool:
        """True if the group's workload does not exist in the backend."""
        return not (await self.refresh()).exists

    async def is_changed(self) -> bool:
        """
        True if the workload must be (re)created or its template updated.

        Compares the live workload template to the desired template with
        strict tolerations.
        """
        try:
            current = await self._get()
        except NotFoundError:
            return True
        except BackendError as e:
            raise self._error("failed to get elasticsearch node workload", "is_changed") from e
        return templates_differ(current.template, self.desired_workload().template)

    async def pod_spec_matches(self) -> bool:
        """
        True if every live pod of the group runs the desired template.

        Pods are compared with non-strict tolerations. A group with desired
        replicas needs at least one pod to match; pod listing failures count
        as not matching.
        """
        try:
            pods = await self.backend.list_pods(self.namespace, self.spec.selector)
        except BackendError as e:
            logger.error(f"Could not get node pods for {self.name}: {e}")
            return False

        if not pods:
            return self.spec.replicas == 0

        desired = self.desired_workload().template
        return all(
            not pod_specs_differ(pod.spec, desired, strict_tolerations=False)
            for pod in pods
        )

    # -------------------------------------------------------------------------
    # Lifecycle operations
    # -------------------------------------------------------------------------

    async def create(self) -> OperationResult:
        """
        Create the group's workload.

        Idempotent: if the workload already exists it is paused instead.
        After creating, waits for the first revision token, records the
        current configuration and credential fingerprints as baselines and
        leaves the workload paused.

        Returns:
            CREATED if the workload was created, NONE if it already existed.

        Raises:
            NodeGroupError: On backend failure, or if no revision token
                appears within the rollout timeout.
        """
        self._transition(NodeGroupPhase.CREATING)
        try:
            await self.backend.create(self.desired_workload())
        except AlreadyExistsError:
            logger.info(f"Node group {self.name} already exists, pausing")
            await self.pause()
            await self.refresh()
            return OperationResult.NONE
        except BackendError as e:
            raise self._error(
                "failed to create elasticsearch node workload", "create"
            ) from e

        logger.info(
            f"Successfully reconciled elasticsearch node {self.kind.value.lower()}: created "
            f"(node={self.name}, cluster={self.cluster_name}, namespace={self.namespace})"
        )

        await self.wait_for_initial_rollout()
        await self.pause()
        await self.refresh_fingerprints()
        self._transition(NodeGroupPhase.PAUSED)
        return OperationResult.CREATED

    async def delete(self) -> None:
        """Delete the group's workload; an absent workload is not an error."""
        try:
            await self.backend.delete(self.kind, self.key)
        except NotFoundError:
            pass
        except BackendError as e:
            raise self._error("failed to delete elasticsearch node workload", "delete") from e
        logger.info(f"Deleted node group {self.name} (cluster={self.cluster_name})")
        self._transition(NodeGroupPhase.MISSING)

    async def execute_update(self) -> OperationResult:
        """
        Merge the desired template into the live workload.

        Only the template portion is written; every other live field (such as
        the replica count) is preserved. No write if the templates match.
        """

        def compare(current: Workload, desired: Workload) -> bool:
            return templates_differ(current.template, desired.template)

        def mutate(current: Workload, desired: Workload) -> None:
            current.template = updatable_template(current.template, desired.template)

        return await self._update(compare, mutate, "execute_update")

    async def _set_paused(self, paused: bool) -> OperationResult:
        def compare(current: Workload, _desired: Workload) -> bool:
            return current.is_paused != paused

        def mutate(current: Workload, _desired: Workload) -> None:
            self._apply_paused(current, paused)

        return await self._update(compare, mutate, "pause" if paused else "unpause")

    async def pause(self) -> OperationResult:
        """Hold back template changes from running pods."""
        result = await self._set_paused(True)
        self.observed.paused = True
        return result

    async def unpause(self) -> OperationResult:
        """Release staged template changes to running pods."""
        result = await self._set_paused(False)
        self.observed.paused = False
        self._transition(NodeGroupPhase.ROLLING_OUT)
        return result

    async def _set_replicas(self, replicas: int, operation: str) -> OperationResult:
        def compare(_current: Workload, _desired: Workload) -> bool:
            return True

        def mutate(current: Workload, _desired: Workload) -> None:
            self._apply_replicas(current, replicas)

        return await self._update(compare, mutate, operation)

    async def scale_up(self) -> OperationResult:
        """Set the replica count to the desired count."""
        return await self._set_replicas(self.spec.replicas, "scale_up")

    async def scale_down(self) -> OperationResult:
        """Set the replica count to zero."""
        return await self._set_replicas(0, "scale_down")

    async def replica_count(self) -> int:
        """Live replica count as reported by the backend."""
        return (await self.refresh()).replicas

    async def configured_replicas(self) -> int:
        """Replica count currently set on the workload."""
        try:
            return (await self._get()).replicas
        except BackendError as e:
            raise self._error("failed to get elasticsearch node workload", "scale") from e

    async def scale_to_desired(self, current: int) -> OperationResult:
        """
        Move the replica count from current to the desired count.

        A scale-down waits until the removed replicas have left the cluster.

        Raises:
            NodeGroupError: On backend failure, or if removed replicas are
                still cluster members after the membership timeout.
        """
        desired = self.spec.replicas
        if desired == current:
            return OperationResult.NONE
        operation = "scale_up" if desired > current else "scale_down"
        result = await self._set_replicas(desired, operation)
        if desired < current:
            await self._wait_for_membership(False, self.member_names(current)[desired:])
        return result

    # -------------------------------------------------------------------------
    # Waits
    # -------------------------------------------------------------------------

    async def wait_for_initial_rollout(self) -> None:
        """
        Wait until the backend assigns the workload its first revision token.

        Raises:
            NodeGroupError: On timeout or backend failure.
        """

        async def has_revision() -> bool:
            return bool((await self._get()).revision)

        try:
            await self._wait(
                has_revision,
                self.settings.rollout_timeout_seconds,
                f"initial revision of node {self.name}",
            )
        except WaitCancelledError:
            raise
        except (RolloutError, BackendError) as e:
            raise self._error("node workload never received a revision", "create") from e

    async def wait_for_node_rollout(self) -> None:
        """
        Wait until every live pod runs the desired template.

        Raises:
            NodeGroupError: On timeout (the group is left unpaused).
        """
        try:
            await self._wait(
                self.pod_spec_matches,
                self.settings.rollout_timeout_seconds,
                f"rollout of node {self.name}",
            )
        except WaitCancelledError:
            raise
        except RolloutError as e:
            raise self._error("timed out waiting for node to rollout", "rollout") from e

    async def _wait_for_membership(self, expected: bool, names: list[str]) -> None:
        verb = "rejoin" if expected else "leave"

        async def membership_settled() -> bool:
            for node_name in names:
                if await self.membership.is_node_in_cluster(node_name) != expected:
                    return False
            return True

        try:
            await self._wait(
                membership_settled,
                self.settings.membership_timeout_seconds,
                f"node {self.name} to {verb} the cluster",
            )
        except WaitCancelledError:
            raise
        except (RolloutError, BackendError) as e:
            raise self._error(f"node did not {verb} the cluster", verb) from e

    async def wait_for_node_rejoin_cluster(self) -> None:
        """
        Wait until every replica of the group is a cluster member again.

        Raises:
            NodeGroupError: On timeout or membership query failure.
        """
        previous = self.phase
        self._transition(NodeGroupPhase.REJOIN_PENDING)
        await self._wait_for_membership(True, self.member_names())
        self._transition(previous)

    async def wait_for_node_leave_cluster(self, replicas: int | None = None) -> None:
        """
        Wait until no replica of the group is a cluster member.

        Args:
            replicas: Replica count to derive member names from, for groups
                that were already scaled down.

        Raises:
            NodeGroupError: On timeout or membership query failure.
        """
        await self._wait_for_membership(False, self.member_names(replicas))

    # -------------------------------------------------------------------------
    # Composite operations
    # -------------------------------------------------------------------------

    async def refresh_fingerprints(self) -> None:
        """
        Record the current bundle fingerprints on the workload.

        A bundle that disappeared after being recorded keeps its recorded
        fingerprint and is reported instead of being overwritten with the
        empty digest.
        """
        observed = await self.refresh()
        config = await self.fingerprinter.fingerprint(self.config_ref)
        credential = await self.fingerprinter.fingerprint(self.credential_ref)

        updates: dict[str, str] = {}
        for annotation, recorded, current, ref in (
            (CONFIG_FINGERPRINT_ANNOTATION, observed.config_fingerprint, config, self.config_ref),
            (
                CREDENTIAL_FINGERPRINT_ANNOTATION,
                observed.credential_fingerprint,
                credential,
                self.credential_ref,
            ),
        ):
            decision = compare_fingerprints(recorded, current)
            if decision == FingerprintDecision.VANISHED:
                logger.warning(
                    f"{ref.kind.value} {ref.key} disappeared after its fingerprint was "
                    f"recorded for node {self.name}; keeping the recorded fingerprint"
                )
            elif decision != FingerprintDecision.UNCHANGED:
                updates[annotation] = current

        if updates:
            await self._record_annotations(updates)

    async def _record_annotations(self, updates: dict[str, str]) -> None:
        def compare(current: Workload, _desired: Workload) -> bool:
            return any(current.annotations.get(k) != v for k, v in updates.items())

        def mutate(current: Workload, _desired: Workload) -> None:
            current.annotations.update(updates)

        await self._update(compare, mutate, "record_fingerprints")
        if CONFIG_FINGERPRINT_ANNOTATION in updates:
            self.observed.config_fingerprint = updates[CONFIG_FINGERPRINT_ANNOTATION]
        if CREDENTIAL_FINGERPRINT_ANNOTATION in updates:
            self.observed.credential_fingerprint = updates[CREDENTIAL_FINGERPRINT_ANNOTATION]

    async def progress_node_changes(self) -> bool:
        """
        Roll out pending template drift.

        No-op if neither the template nor the running pods have drifted.
        Otherwise: update template, unpause, wait for the pods to roll out,
        pause, record fresh fingerprints. A group found unpaused without
        drift (a previous pass timed out mid-rollout) is paused again.

        Returns:
            True if a rollout was performed.

        Raises:
            NodeGroupError: On backend failure, or if the rollout does not
                complete within the rollout timeout. The group is left
                unpaused in that case so the condition is visible on retry.
        """
        observed = await self.refresh()
        if not await self.is_changed() and await self.pod_spec_matches():
            if observed.exists and not observed.paused:
                await self.pause()
                await self.refresh_fingerprints()
                self._transition(NodeGroupPhase.PAUSED)
            return False

        self._transition(NodeGroupPhase.UPDATE_PENDING)
        await self.execute_update()

        try:
            await self.unpause()
        except NodeGroupError as e:
            raise self._error("unable to unpause node", "unpause") from e

        await self.wait_for_node_rollout()

        try:
            await self.pause()
        except NodeGroupError as e:
            raise self._error("unable to pause node", "pause") from e

        self._transition(NodeGroupPhase.PAUSED)
        await self.refresh_fingerprints()
        return True

    async def state(self) -> NodeGroupStatus:
        """
        Derive the group's externally visible status flags.

        scheduled_for_upgrade is is_changed(). scheduled_for_cert_redeploy is
        set when the credential fingerprint differs from the recorded one.
        With nothing recorded yet (e.g. after operator restart) the current
        fingerprints are adopted without flagging a redeploy.
        """
        observed = await self.refresh(track_phase=False)
        upgrade = await self.is_changed()
        credential = await self.fingerprinter.fingerprint(self.credential_ref)
        config = await self.fingerprinter.fingerprint(self.config_ref)

        credential_decision = compare_fingerprints(observed.credential_fingerprint, credential)
        config_decision = compare_fingerprints(observed.config_fingerprint, config)

        adopt: dict[str, str] = {}
        if observed.exists:
            if credential_decision == FingerprintDecision.ADOPT:
                adopt[CREDENTIAL_FINGERPRINT_ANNOTATION] = credential
            if config_decision == FingerprintDecision.ADOPT:
                adopt[CONFIG_FINGERPRINT_ANNOTATION] = config
        if adopt:
            await self._record_annotations(adopt)

        if credential_decision == FingerprintDecision.VANISHED:
            logger.warning(
                f"Credential bundle {self.credential_ref.key} is missing for node "
                f"{self.name} although a fingerprint was recorded"
            )

        return NodeGroupStatus(
            name=self.name,
            phase=self.derive_phase(observed),
            scheduled_for_upgrade=upgrade,
            scheduled_for_cert_redeploy=credential_decision == FingerprintDecision.CHANGED,
            config_changed=config_decision == FingerprintDecision.CHANGED,
            credential_bundle_missing=credential_decision == FingerprintDecision.VANISHED,
        )


class DeploymentNodeGroup(NodeGroup):
    """
    Node group backed by a deployment-style workload.

    Created unpaused so the backend assigns a first revision, then paused.
    Its single replica joins the cluster under the group name.
    """

    kind = WorkloadKind.DEPLOYMENT
    paused_at_creation = False

    def _apply_paused(self, workload: Workload, paused: bool) -> None:
        workload.paused = paused

    def _apply_replicas(self, workload: Workload, replicas: int) -> None:
        workload.replicas = replicas

    def member_names(self, replicas: int | None = None) -> list[str]:
        return [self.name]


class StatefulSetNodeGroup(NodeGroup):
    """
    Node group backed by a stateful-identity workload.

    Pausing sets the rolling-update partition to the replica count, so no
    ordinal receives the new template until the partition drops to zero.
    Replicas join the cluster as <group>-<ordinal>.
    """

    kind = WorkloadKind.STATEFUL_SET
    paused_at_creation = True

    def _apply_paused(self, workload: Workload, paused: bool) -> None:
        workload.partition = workload.replicas if paused else 0

    def _apply_replicas(self, workload: Workload, replicas: int) -> None:
        was_paused = workload.is_paused
        workload.replicas = replicas
        if was_paused:
            workload.partition = replicas

    def member_names(self, replicas: int | None = None) -> list[str]:
        count = self.spec.replicas if replicas is None else replicas
        return [f"{self.name}-{ordinal}" for ordinal in range(count)]


_VARIANTS: dict[WorkloadKind, type[NodeGroup]] = {
    WorkloadKind.DEPLOYMENT: DeploymentNodeGroup,
    WorkloadKind.STATEFUL_SET: StatefulSetNodeGroup,
}


def new_node_group(
    spec: GroupSpec,
    template: PodSpec,
    backend: WorkloadBackendProtocol,
    fingerprinter: ConfigFingerprinter,
    membership: ClusterMembershipProtocol,
    settings: RolloutSettings | None = None,
    stop: asyncio.Event | None = None,
    observer: TransitionObserver | None = None,
) -> NodeGroup:
    """Create the node group variant matching spec.kind."""
    return _VARIANTS[spec.kind](
        spec,
        template,
        backend,
        fingerprinter,
        membership,
        settings=settings,
        stop=stop,
        observer=observer,
    )
