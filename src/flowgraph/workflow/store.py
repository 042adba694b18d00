"""File based workflow storage keyed by workflow id, organized by organization."""

import json
import logging
from pathlib import Path

from .model import WorkflowModel
from .schema import WorkflowDocument

logger = logging.getLogger(__name__)

DEFAULT_ORGANIZATION = "default"


class VersionConflictError(Exception):
    """Raised when a save is based on a stale workflow version."""

    def __init__(self, workflow_id: str, expected: int, actual: int):
        self.workflow_id = workflow_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Workflow {workflow_id} is at version {actual}, save expected version {expected}"
        )


class WorkflowStore:
    """Stores workflow documents as versioned JSON files."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    @classmethod
    def from_settings(cls) -> "WorkflowStore":
        from ..config import get_settings

        return cls(Path(get_settings().store_dir or "workflows"))

    def _org_dir(self, organization: str | None) -> Path:
        return self.base_dir / (organization or DEFAULT_ORGANIZATION)

    @staticmethod
    def _version_of(filepath: Path) -> int:
        return int(filepath.stem.rsplit("-v", 1)[1])

    @staticmethod
    def _id_of(filepath: Path) -> str:
        return filepath.stem.rsplit("-v", 1)[0]

    def _versions(self, workflow_id: str, organization: str | None) -> list[Path]:
        org_dir = self._org_dir(organization)
        if not org_dir.exists():
            return []
        # The glob also matches ids that merely start with "<id>-v".
        matches = [f for f in org_dir.glob(f"{workflow_id}-v*.json") if self._id_of(f) == workflow_id]
        return sorted(matches, key=self._version_of)

    def latest_version(self, workflow_id: str, organization: str | None = DEFAULT_ORGANIZATION) -> int | None:
        matches = self._versions(workflow_id, organization)
        return self._version_of(matches[-1]) if matches else None

    def save(self, workflow: WorkflowModel, expected_version: int | None = None) -> str:
        """Save a workflow and return its ID.

        When ``expected_version`` is given it must equal the latest stored
        version, otherwise VersionConflictError is raised and nothing is written.
        """
        if not workflow.id:
            raise ValueError("Workflow id is required to save")

        organization = workflow.metadata.organization_id
        if expected_version is not None:
            stored = self.latest_version(workflow.id, organization)
            if stored is not None and stored != expected_version:
                raise VersionConflictError(workflow.id, expected_version, stored)

        org_dir = self._org_dir(organization)
        org_dir.mkdir(parents=True, exist_ok=True)

        filepath = org_dir / f"{workflow.id}-v{workflow.metadata.version}.json"
        filepath.write_text(json.dumps(workflow.to_json(), indent=2))
        logger.info("Saved workflow %s version %s", workflow.id, workflow.metadata.version)
        return workflow.id

    def load(self, workflow_id: str, organization: str | None = DEFAULT_ORGANIZATION) -> WorkflowModel | None:
        """Load the latest version of a workflow by ID."""
        matches = self._versions(workflow_id, organization)
        if not matches:
            return None

        data = json.loads(matches[-1].read_text())
        return WorkflowModel.from_document(WorkflowDocument.model_validate(data))

    def list_by_organization(self, organization: str | None = DEFAULT_ORGANIZATION) -> list[WorkflowModel]:
        """List the latest version of every workflow for an organization."""
        org_dir = self._org_dir(organization)
        if not org_dir.exists():
            return []

        latest: dict[str, Path] = {}
        for filepath in org_dir.glob("*-v*.json"):
            workflow_id = self._id_of(filepath)
            current = latest.get(workflow_id)
            if current is None or self._version_of(filepath) > self._version_of(current):
                latest[workflow_id] = filepath

        return [
            WorkflowModel.from_json(json.loads(latest[workflow_id].read_text()))
            for workflow_id in sorted(latest)
        ]

    def delete(self, workflow_id: str, organization: str | None = DEFAULT_ORGANIZATION) -> bool:
        """Delete all versions of a workflow. Returns True if any were deleted."""
        matches = self._versions(workflow_id, organization)
        for f in matches:
            f.unlink()
        return len(matches) > 0
