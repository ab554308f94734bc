"""Read-only access to the local kubeconfig.

The kubeconfig is loaded once and the selected context is resolved into an
immutable ``ClusterContext`` that is passed explicitly to everything that
needs it. Nothing in here ever writes the kubeconfig or switches its
current context.
"""

import base64
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from kubernetes.config.kube_config import KUBE_CONFIG_DEFAULT_LOCATION

from sienna_setup.errors import EndpointNotFound, NoActiveContext


@dataclass(frozen=True)
class ClusterContext:
    name: str
    cluster_name: str
    api_endpoint: str = ""
    trust_anchor_data: str = ""


@dataclass
class Kubeconfig:
    """The merged content of one or more kubeconfig files."""

    current_context: Optional[str]
    contexts: Dict[str, Dict[str, Any]]
    clusters: Dict[str, Dict[str, Any]]
    # Directory of the file each cluster was defined in, used to resolve relative paths
    cluster_dirs: Dict[str, Path]

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_dir: Optional[Path] = None) -> "Kubeconfig":
        kubeconfig = cls(current_context=None, contexts={}, clusters={}, cluster_dirs={})
        kubeconfig.merge(data, source_dir or Path.cwd())
        return kubeconfig

    def merge(self, data: Dict[str, Any], source_dir: Path):
        """Merge another kubeconfig document, the first definition of a name wins."""
        data = data or {}
        if not self.current_context and data.get("current-context"):
            self.current_context = data["current-context"]
        for item in data.get("contexts") or []:
            self.contexts.setdefault(item["name"], item.get("context") or {})
        for item in data.get("clusters") or []:
            if item["name"] not in self.clusters:
                self.clusters[item["name"]] = item.get("cluster") or {}
                self.cluster_dirs[item["name"]] = source_dir

    def context_names(self) -> List[str]:
        return sorted(self.contexts.keys())


def kubeconfig_paths(kubeconfig_path: Optional[str] = None) -> List[Path]:
    """
    The kubeconfig files to read, in priority order. An explicit path wins,
    otherwise $KUBECONFIG (a list of paths) or the default location is used.
    """
    raw = kubeconfig_path or os.environ.get("KUBECONFIG") or KUBE_CONFIG_DEFAULT_LOCATION
    return [Path(os.path.expanduser(p)) for p in raw.split(os.pathsep) if p]


def load_kubeconfig(kubeconfig_path: Optional[str] = None) -> Kubeconfig:
    kubeconfig = Kubeconfig(current_context=None, contexts={}, clusters={}, cluster_dirs={})
    found = False
    for path in kubeconfig_paths(kubeconfig_path):
        if not path.is_file():
            logging.debug(f"Skipping missing kubeconfig file {path}")
            continue
        found = True
        with open(path, "r") as f:
            kubeconfig.merge(yaml.safe_load(f.read()), path.parent.resolve())
    if not found:
        raise NoActiveContext(
            "No kubeconfig found. Please configure kubectl first.",
            f"Looked in: {', '.join(str(p) for p in kubeconfig_paths(kubeconfig_path))}",
        )
    return kubeconfig


def resolve_context(kubeconfig: Kubeconfig, context_name: Optional[str] = None) -> ClusterContext:
    """
    Resolve the requested context (or the current one) into a ClusterContext.
    The endpoint fields are filled in later by ``with_cluster_credentials``.
    """
    if context_name is None:
        if not kubeconfig.current_context:
            raise NoActiveContext("No current kubectl context found. Please configure kubectl first.")
        name = kubeconfig.current_context
    else:
        # An empty name was asked for explicitly, it never means the current context
        name = context_name
    if name not in kubeconfig.contexts:
        raise NoActiveContext(
            f"Context '{name}' not found.",
            f"Available contexts: {', '.join(kubeconfig.context_names()) or 'none'}",
        )
    cluster_name = kubeconfig.contexts[name].get("cluster") or ""
    return ClusterContext(name=name, cluster_name=cluster_name)


def read_trust_anchor(cluster: Dict[str, Any], source_dir: Path) -> str:
    """
    Return the base64 encoded certificate authority of a cluster entry. Inline
    data is returned as is, a certificate authority file is read and encoded.
    """
    ca_data = cluster.get("certificate-authority-data")
    if ca_data:
        return ca_data
    ca_path = cluster.get("certificate-authority")
    if not ca_path:
        return ""
    ca_file = Path(os.path.expanduser(ca_path))
    if not ca_file.is_absolute():
        ca_file = source_dir / ca_file
    return base64.b64encode(ca_file.read_bytes()).decode("ascii")


def extract_cluster_credentials(kubeconfig: Kubeconfig, context: ClusterContext) -> Tuple[str, str]:
    """
    Read the API server URL and the certificate authority data of the cluster
    the context points to. Both are returned verbatim from the kubeconfig.
    """
    cluster = kubeconfig.clusters.get(context.cluster_name)
    if cluster is None:
        raise EndpointNotFound(
            "Could not extract API server URL from kubeconfig.",
            f"Context '{context.name}' refers to cluster '{context.cluster_name}' "
            "which is not defined in the kubeconfig.",
        )
    api_endpoint = cluster.get("server") or ""
    if not api_endpoint:
        raise EndpointNotFound(
            "Could not extract API server URL from kubeconfig.",
            f"Cluster '{context.cluster_name}' has no server configured.",
        )
    try:
        trust_anchor_data = read_trust_anchor(cluster, kubeconfig.cluster_dirs[context.cluster_name])
    except OSError as err:
        raise EndpointNotFound(
            "Could not read the certificate authority of the cluster.",
            str(err),
        ) from err
    return api_endpoint, trust_anchor_data


def with_cluster_credentials(kubeconfig: Kubeconfig, context: ClusterContext) -> ClusterContext:
    api_endpoint, trust_anchor_data = extract_cluster_credentials(kubeconfig, context)
    return ClusterContext(
        name=context.name,
        cluster_name=context.cluster_name,
        api_endpoint=api_endpoint,
        trust_anchor_data=trust_anchor_data,
    )
