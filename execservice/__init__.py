"""Job execution cluster: a coordinator that assigns jobs, and worker nodes that run Dockerfiles."""

__version__ = "0.1.0"