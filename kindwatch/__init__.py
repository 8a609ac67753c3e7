"""kindwatch: multi-kind Kubernetes resource watcher."""

__version__ = "0.1.0"
