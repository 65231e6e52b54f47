"""
Project lookup and tag synchronization.

The project must already exist on the service; it is never created here.
Tags are reconciled against the local label list: missing ones are created,
existing ones contribute their image count to the report.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..client.models import Domain, Project, Tag
from ..client.training_api import TrainingApiClient
from ..console import ConsolePrompter
from ..exceptions import ProjectNotFoundError

logger = logging.getLogger(__name__)


class ProjectResolver:
    """Finds a project by exact name and reports its domain."""

    def __init__(self, client: TrainingApiClient, prompter: Optional[ConsolePrompter] = None):
        self.client = client
        self.prompter = prompter or ConsolePrompter()

    def resolve(self, project_name: str) -> Tuple[Project, Optional[Domain]]:
        """
        Look up ``project_name`` among the subscription's projects.

        Returns:
            The project and its domain (None when the project has no domain id)

        Raises:
            ProjectNotFoundError: If no project has exactly this name
        """
        self.prompter.write(f"----- Selecting existing project: {project_name}... -----")

        project = next((p for p in self.client.get_projects() if p.name == project_name), None)
        if project is None:
            logger.error(f"Project {project_name} was not found in your subscription")
            raise ProjectNotFoundError(project_name)

        self.prompter.write(f"\t{project_name} found in Custom Vision workspace.")
        logger.info(f"Resolved project '{project_name}' to id {project.id}")

        domain = None
        if project.domain_id:
            domain = self.client.get_domain(project.domain_id)
            self.prompter.write(f"\tProject domain: {domain.name}.")
            self.prompter.write(f"\tProject type: {domain.type}.")

        return project, domain


@dataclass
class TagSyncResult:
    """Outcome of reconciling the label list with the remote tags."""
    tags: List[Tag] = field(default_factory=list)
    created: List[Tag] = field(default_factory=list)
    existing_image_count: int = 0

    @property
    def tags_by_name(self) -> Dict[str, Tag]:
        return {tag.name: tag for tag in self.tags}


class TagSynchronizer:
    """
    Creates the remote tags missing for a label list.

    Running it again against the same remote tag set creates nothing: every
    label is looked up by exact name first, and tags created during a run
    are remembered for labels repeated later in the list.
    """

    def __init__(self, client: TrainingApiClient, prompter: Optional[ConsolePrompter] = None):
        self.client = client
        self.prompter = prompter or ConsolePrompter()

    def synchronize(self, project_id: str, labels: Sequence[str]) -> TagSyncResult:
        """
        Reconcile ``labels`` (in order) with the project's tags.

        Args:
            project_id: Project id
            labels: Label names in tag-list order

        Returns:
            TagSyncResult with one tag per distinct label, in label order
        """
        self.prompter.write("----- Retrieving tags... -----")

        remote_tags = {tag.name: tag for tag in self.client.get_tags(project_id)}
        logger.info(f"Project has {len(remote_tags)} existing tags")

        result = TagSyncResult()
        seen = set()

        for label in labels:
            if label in seen:
                continue
            seen.add(label)

            tag = remote_tags.get(label)
            if tag is None:
                tag = self.client.create_tag(project_id, label)
                remote_tags[label] = tag
                result.created.append(tag)
                self.prompter.write(f"\tTag {tag.name} was created.")
            else:
                result.existing_image_count += tag.image_count
                self.prompter.write(f"\tTag {label} was NOT created (it already exists)")

            result.tags.append(tag)

        logger.info(f"Tag sync: {len(result.created)} created, "
                    f"{len(result.tags) - len(result.created)} existing, "
                    f"{result.existing_image_count} images already tagged")
        return result
