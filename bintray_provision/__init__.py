"""Public interface for the package provisioning toolchain."""

from .cleanup import CleanupReport, cleanup_manifest
from .client import DEFAULT_API_URL, BintrayClient, RemotePackageService, UploadSummary
from .errors import (
    CreationError,
    ExistenceCheckError,
    ManifestError,
    ProvisionError,
    ServiceError,
    UploadError,
)
from .manifest import Manifest, Package, Repository, UploadSpec, load_manifest
from .paths import PackagePath, RepositoryPath, VersionPath
from .publish import PublishReport, publish_packages
from .reconcile import Action, Outcome, ReconcileReport, Reconciler
from .reporting import Reporter

__all__ = [
    "Action",
    "BintrayClient",
    "CleanupReport",
    "CreationError",
    "DEFAULT_API_URL",
    "ExistenceCheckError",
    "Manifest",
    "ManifestError",
    "Outcome",
    "Package",
    "PackagePath",
    "ProvisionError",
    "PublishReport",
    "ReconcileReport",
    "Reconciler",
    "RemotePackageService",
    "Repository",
    "RepositoryPath",
    "Reporter",
    "ServiceError",
    "UploadError",
    "UploadSpec",
    "UploadSummary",
    "VersionPath",
    "cleanup_manifest",
    "load_manifest",
    "publish_packages",
]
