"""mkvm package."""

__all__ = [
    "catalog",
    "cli",
    "config",
    "constants",
    "domain",
    "exceptions",
    "hypervisor",
    "identity",
    "image_cache",
    "models",
    "orchestrator",
    "rendering",
    "seed",
    "storage",
    "utils",
]
