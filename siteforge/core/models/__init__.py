"""
Domain models — Pydantic types for the site pipeline.

All models are re-exported here for convenient access:

    from siteforge.core.models import WebsiteDocument, GeneratedFile, DeployRequest
"""

from siteforge.core.models.deploy import (
    Commit,
    CommitResult,
    DeployPhase,
    DeployRequest,
    DeployResult,
    DeployTarget,
    FilterDecision,
    HostedDeployment,
    ProjectRef,
    ProvisionedProject,
    VersionRecord,
)
from siteforge.core.models.template import GeneratedFile
from siteforge.core.models.website import (
    ComponentInstance,
    Page,
    SeoMetadata,
    WebsiteDocument,
    page_slug,
    route_for,
)

__all__ = [
    # deploy.py
    "Commit",
    "CommitResult",
    # website.py
    "ComponentInstance",
    "DeployPhase",
    "DeployRequest",
    "DeployResult",
    "DeployTarget",
    "FilterDecision",
    # template.py
    "GeneratedFile",
    "HostedDeployment",
    "Page",
    "ProjectRef",
    "ProvisionedProject",
    "SeoMetadata",
    "VersionRecord",
    "WebsiteDocument",
    "page_slug",
    "route_for",
]
