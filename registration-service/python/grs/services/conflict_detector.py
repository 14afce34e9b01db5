import logging

from grs.connectors.protocols import GitOpsClient
from grs.utils.repository import repository_fingerprint

logger = logging.getLogger(__name__)


class ConflictDetector:
    """
    Detects repositories that are already registered.

    The lookup is a label selector on AppProjects, evaluated server-side. It is
    a read-then-act check: two concurrent registrations of the same repository
    can both pass it, the unique namespace and project names settle that race.
    """

    def __init__(self, gitops: GitOpsClient):
        self.gitops = gitops

    async def has_conflict(self, fingerprint: str) -> bool:
        conflict = await self.gitops.check_project_conflict_by_label(fingerprint)
        if conflict:
            logger.info(f"Repository fingerprint {fingerprint} is already registered")
        return conflict

    async def has_repository_conflict(self, repository_url: str) -> bool:
        return await self.has_conflict(repository_fingerprint(repository_url))
