"""Kind to wire-level resource mapping.

Pure functions; the well-known kind table is immutable after import.
"""

from __future__ import annotations

from types import MappingProxyType

from kindwatch.models.events import ResourceKindDescriptor

_KIND_TO_RESOURCE = MappingProxyType(
    {
        "Pod": "pods",
        "Deployment": "deployments",
        "Service": "services",
        "ConfigMap": "configmaps",
        "Secret": "secrets",
        "Namespace": "namespaces",
        "Node": "nodes",
        "PersistentVolume": "persistentvolumes",
        "PersistentVolumeClaim": "persistentvolumeclaims",
        "Ingress": "ingresses",
        "Job": "jobs",
        "CronJob": "cronjobs",
        "StatefulSet": "statefulsets",
        "DaemonSet": "daemonsets",
        "ServiceAccount": "serviceaccounts",
        "Role": "roles",
        "RoleBinding": "rolebindings",
        "ClusterRole": "clusterroles",
        "ClusterRoleBinding": "clusterrolebindings",
        "CustomResourceDefinition": "customresourcedefinitions",
    }
)


def resource_name(kind: str) -> str:
    """Return the plural resource path segment for *kind*.

    Unknown kinds get the first character lowercased and an "s" appended.
    Irregular plurals (``NetworkPolicy``) come out wrong; callers that know
    the real plural from discovery should set ``ResourceKindDescriptor.plural``.
    """
    resource = _KIND_TO_RESOURCE.get(kind)
    if resource is not None:
        return resource
    if not kind:
        return "s"
    return f"{kind[0].lower()}{kind[1:]}s"


def plural_for(resource: ResourceKindDescriptor) -> str:
    """Plural for a descriptor, preferring the discovered one."""
    return resource.plural or resource_name(resource.kind)


def split_group_version(api_version: str) -> tuple[str, str]:
    """Split ``group/version`` into its parts.  Never fails.

    ``"v1"`` -> ``("", "v1")``, ``"apps/v1"`` -> ``("apps", "v1")``,
    anything without a slash is a bare version in the core group.
    """
    if api_version == "v1":
        return "", api_version
    group, sep, version = api_version.partition("/")
    if sep:
        return group, version
    return "", api_version


def descriptor_for(kind: str, api_version: str, namespaced: bool = True) -> ResourceKindDescriptor:
    """Build a descriptor from a kind name and an apiVersion string."""
    group, version = split_group_version(api_version)
    return ResourceKindDescriptor(kind=kind, group=group, version=version, namespaced=namespaced)


DEFAULT_KINDS: tuple[ResourceKindDescriptor, ...] = (
    descriptor_for("Pod", "v1"),
    descriptor_for("Deployment", "apps/v1"),
    descriptor_for("Service", "v1"),
    descriptor_for("ConfigMap", "v1"),
    descriptor_for("Namespace", "v1", namespaced=False),
)
