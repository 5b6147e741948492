from .jsonl import MetricsClient, metrics

__all__ = ["MetricsClient", "metrics"]
