"""KubeSphere and cluster DNS add-on manifests, configuration models and deployment steps."""

__version__ = "0.1.0"

__all__ = [
    "config_v2",
    "config_v3",
    "manifests",
    "dns_manifests",
    "runner",
    "dns",
    "kubesphere",
]