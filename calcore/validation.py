"""
Runtime checks that repository implementations honour their protocols.

Repository wiring happens at application start-up and in tests; checking
each implementation against its @runtime_checkable protocol there turns a
missing method into an immediate, named error instead of an AttributeError
in the middle of a request.
"""

import logging
from typing import Type, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")


class RepositoryValidationError(Exception):
    """Raised when repository contract validation fails"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that a repository implementation satisfies a protocol contract.

    Args:
        repository: The repository implementation to validate
        protocol: The protocol class to validate against

    Raises:
        RepositoryValidationError: If validation fails
    """
    if not isinstance(repository, protocol):
        error_message = (
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )
        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )
        raise RepositoryValidationError(error_message)

    logger.debug(
        "Repository protocol validation passed",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """
    Validate and return a repository typed as the protocol.

    Example:
        >>> from calcore.repos.memory import MemoryEventRepository, MemoryStore
        >>> from calcore.repositories import EventRepository
        >>> repo = ensure_repository_protocol(
        ...     MemoryEventRepository(MemoryStore()), EventRepository
        ... )
    """
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]
