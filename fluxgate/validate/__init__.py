"""Endpoint validation: artifact reading, specification loading and scoring."""

from fluxgate.validate.endpoint import ContractCheck, EndpointValidator
from fluxgate.validate.sources import (
    ArtifactNotFoundError,
    ArtifactUnreadableError,
    FileSystemReader,
    SourceReader,
)
from fluxgate.validate.specs import UnknownEndpointError, load_specifications

__all__ = [
    "ArtifactNotFoundError",
    "ArtifactUnreadableError",
    "ContractCheck",
    "EndpointValidator",
    "FileSystemReader",
    "SourceReader",
    "UnknownEndpointError",
    "load_specifications",
]
