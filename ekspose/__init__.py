"""ekspose - exposes Deployments through a Service and an Ingress."""

__version__ = "0.1.0"
