"""
Repositories — Version control backends behind one interface

    repository = create_repository("internal", config.repositories["internal"])
    path, metadata = repository.checkout("HEAD", destination)
"""

from typing import Dict, Type

from ..errors import InvalidProject, unknown_name_message
from .base import Repository
from .directory import DirectoryRepository
from .git import GitRepository

REPOSITORY_TYPES: Dict[str, Type[Repository]] = {
    DirectoryRepository.type_name: DirectoryRepository,
    GitRepository.type_name: GitRepository,
}


def create_repository(name: str, config) -> Repository:
    """Instantiate the backend named by config.type."""
    cls = REPOSITORY_TYPES.get(config.type)
    if cls is None:
        raise InvalidProject(unknown_name_message("repository type", config.type, REPOSITORY_TYPES))
    return cls(name, config)


__all__ = [
    'Repository', 'DirectoryRepository', 'GitRepository',
    'REPOSITORY_TYPES', 'create_repository',
]
