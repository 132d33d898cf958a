from typing import Iterable, Iterator, List, NamedTuple, Optional

from chaindeploy.constants import ALL_TAG
from chaindeploy.exceptions import UnconfirmedDeploymentError
from chaindeploy.executor import DeploymentExecutor, DeploymentOutcome
from chaindeploy.graph import TaskGraph
from chaindeploy.networks import NetworkProfile, verification_enabled
from chaindeploy.params import DeploymentTask
from chaindeploy.registry import DeploymentStore
from chaindeploy.verify import VerificationSubmitter

SKIPPED = "skipped"
DEPLOYED = "deployed"
FAILED = "failed"
VERIFICATION_FAILED = "verification-failed"


class TaskReport(NamedTuple):
    name: str
    status: str
    address: Optional[str] = None
    detail: str = ""


class RunReport:
    """Per-task results of one pipeline run, in execution order."""

    def __init__(self, network: str):
        self.network = network
        self.entries: List[TaskReport] = list()

    def __iter__(self) -> Iterator[TaskReport]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def add(self, entry: TaskReport) -> None:
        self.entries.append(entry)

    def get(self, name: str) -> Optional[TaskReport]:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def with_status(self, status: str) -> List[str]:
        return [entry.name for entry in self.entries if entry.status == status]

    @property
    def success(self) -> bool:
        return not self.with_status(FAILED)


class DeploymentPipeline:
    """
    Deploys a set of tasks to one network, in dependency order, stopping at the
    first failure. Everything that can be checked without touching the chain is
    checked before the first transaction is sent.
    """

    def __init__(
        self,
        profile: NetworkProfile,
        store: DeploymentStore,
        executor: DeploymentExecutor,
        verifier: Optional[VerificationSubmitter] = None,
    ):
        self.profile = profile
        self.store = store
        self.executor = executor
        self.verifier = verifier

    def plan(
        self, tasks: Iterable[DeploymentTask], tags: Iterable[str] = (ALL_TAG,)
    ) -> List[DeploymentTask]:
        selected = TaskGraph(tasks).select(tags)
        self.store.check_chain_id(self.profile.name, self.profile.chain_id)
        for task in selected:
            self.executor.artifacts.get(task.contract_name)
        return selected

    def _report_outcome(self, outcome: DeploymentOutcome) -> TaskReport:
        name = outcome.task.contract_name
        if outcome.skipped:
            return TaskReport(name=name, status=SKIPPED, address=outcome.record.address)

        record = outcome.record
        if not (self.verifier and verification_enabled(self.profile)):
            return TaskReport(name=name, status=DEPLOYED, address=record.address)

        verification = self.verifier.submit(record, name, self.profile)
        if verification.ok:
            return TaskReport(name=name, status=DEPLOYED, address=record.address)
        return TaskReport(
            name=name,
            status=VERIFICATION_FAILED,
            address=record.address,
            detail=verification.message,
        )

    def run(
        self, tasks: Iterable[DeploymentTask], tags: Iterable[str] = (ALL_TAG,)
    ) -> RunReport:
        selected = self.plan(tasks, tags)
        names = ", ".join(task.contract_name for task in selected)
        print(f"(i) {len(selected)} task(s) selected for {self.profile.name}: {names}")

        report = RunReport(network=self.profile.name)
        for position, task in enumerate(selected):
            outcome = task.run(self.executor, self.profile, self.store)
            if not outcome.failed:
                report.add(self._report_outcome(outcome))
                continue

            detail = str(outcome.error)
            if isinstance(outcome.error, UnconfirmedDeploymentError):
                detail += "; the transaction may still be mined, re-run to reconcile"
            report.add(TaskReport(name=task.contract_name, status=FAILED, detail=detail))

            remaining = selected[position + 1 :]
            if remaining:
                skipped_names = ", ".join(t.contract_name for t in remaining)
                print(f"Aborting remaining task(s): {skipped_names}")
            break

        return report
