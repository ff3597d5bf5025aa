"""
ticker-spine: stock universe, reference data, price history and heatmaps.

Layers:
    core/           errors, result, logging, settings, models, tiered cache, stores
    execution/      retry, rate limiting, bounded fan-out, paced writer
    sources/        index configuration, price source, collaborator protocols
    domain/         acquisition phases, heatmap resolver, read facade
    orchestration/  pass state machine and cron trigger
    framework/      notification channels
    api/            read-only FastAPI app
"""

__version__ = "0.1.0"
