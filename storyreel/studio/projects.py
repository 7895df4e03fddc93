from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from storyreel.errors import NameConflictError, NotFoundError
from storyreel.storage.base import KeyValueStore

from .models import DEFAULT_PROJECT_NAME, Project, ProjectSummary, touch, utcnow
from .naming import unique_name

logger = logging.getLogger(__name__)

PROJECT_KEY_PREFIX = "projects/"


def project_key(project_id: str) -> str:
    return f"{PROJECT_KEY_PREFIX}{project_id}"


class ProjectManager:
    """
    Owns the id -> Project mapping and the current-project pointer.

    Every read goes through an in-memory cache that is filled from the store on
    first access; every write is a full overwrite of ``projects/{id}``.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._projects: Dict[str, Project] = {}
        self._current_project_id: Optional[str] = None
        self._loaded = False

    async def _load_all(self) -> None:
        if self._loaded:
            return
        for key in await self.store.list(PROJECT_KEY_PREFIX):
            project_id = key[len(PROJECT_KEY_PREFIX):]
            if not project_id or "/" in project_id or project_id in self._projects:
                continue
            try:
                data = await self.store.load(key)
                self._projects[project_id] = Project.model_validate(data)
            except (NotFoundError, ValidationError) as exc:
                logger.warning(f"Skipping unreadable project record {key}: {exc}")
        self._loaded = True

    async def _save(self, project: Project) -> None:
        await self.store.save(project_key(project.id), project.model_dump(mode="json"))
        self._projects[project.id] = project

    async def _require(self, project_id: str) -> Project:
        project = await self.get_project(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def create_project(self, name: str = DEFAULT_PROJECT_NAME) -> Project:
        await self._load_all()
        name = unique_name(name, (p.name for p in self._projects.values()))
        project = Project(name=name)
        await self._save(project)
        self._current_project_id = project.id
        logger.info(f"Created project {project.id} ({name})")
        return project

    async def get_project(self, project_id: str) -> Optional[Project]:
        if project_id in self._projects:
            return self._projects[project_id]
        try:
            data = await self.store.load(project_key(project_id))
        except NotFoundError:
            return None
        project = Project.model_validate(data)
        self._projects[project_id] = project
        return project

    async def list_projects(self) -> List[ProjectSummary]:
        await self._load_all()
        projects = sorted(self._projects.values(), key=lambda p: p.last_opened_at, reverse=True)
        return [p.summary() for p in projects]

    async def update_project(self, project: Project) -> Project:
        await self._require(project.id)
        project.updated_at = touch(project.updated_at)
        await self._save(project)
        logger.debug(f"Saved project {project.id}")
        return project

    async def delete_project(self, project_id: str) -> None:
        await self._require(project_id)
        await self.store.delete(project_key(project_id))
        self._projects.pop(project_id, None)
        if self._current_project_id == project_id:
            self._current_project_id = None
        logger.info(f"Deleted project {project_id}")

    async def rename_project(self, project_id: str, new_name: str) -> Project:
        project = await self._require(project_id)
        if project.name == new_name:
            return project

        await self._load_all()
        if any(p.name == new_name for p in self._projects.values() if p.id != project_id):
            raise NameConflictError(f'A project named "{new_name}" already exists')

        old_name = project.name
        project.name = new_name
        await self.update_project(project)
        logger.info(f"Renamed project {project_id}: {old_name} -> {new_name}")
        return project

    async def switch_project(self, project_id: str) -> Project:
        project = await self._require(project_id)
        project.last_opened_at = utcnow()
        await self.update_project(project)
        self._current_project_id = project_id
        logger.info(f"Switched to project {project_id}")
        return project

    def get_current_project_id(self) -> Optional[str]:
        return self._current_project_id

    async def get_current_project(self) -> Optional[Project]:
        if self._current_project_id is None:
            return None
        return await self.get_project(self._current_project_id)
