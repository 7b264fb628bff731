"""
Bundle Module

Package resolution, scratch workspaces, manifest queries and code signing.
"""

from simforge.bundle.manifest import read_bundle_identifier, read_manifest_value
from simforge.bundle.resolver import (
    BundleResolver,
    PackageKind,
    PackageReference,
    ResolvedBundle,
)
from simforge.bundle.signer import (
    CodeSigner,
    SigningIdentity,
    discover_identities,
    parse_identities,
)
from simforge.bundle.workspace import ScratchWorkspace

__all__ = [
    # Resolution
    "BundleResolver",
    "PackageKind",
    "PackageReference",
    "ResolvedBundle",
    "ScratchWorkspace",
    # Signing
    "CodeSigner",
    "SigningIdentity",
    "discover_identities",
    "parse_identities",
    # Manifest
    "read_bundle_identifier",
    "read_manifest_value",
]
