"""Building blocks for managing NATS deployments on Kubernetes and inspecting JetStream."""

__version__ = "0.1.0"