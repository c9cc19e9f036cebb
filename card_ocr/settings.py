"""
Runtime settings for the extraction pipeline.

The Flask layer builds these from ``config.Config``; library callers can
construct them directly.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

DEFAULT_CONFIDENCE_FLOORS = {"name": 50.0, "title": 60.0, "company": 50.0}


@dataclass(frozen=True)
class PipelineConfig:
    """Knobs read by the orchestrator, the extractors and the arbiter.

    Attributes:
        cloud_api_key: Gemini key; its presence is the cloud credential flag
        quota_ceiling: Cloud requests allowed per quota period
        quota_period_days: Length of one quota period
        force_offline: Skip the cloud backend and the network probe entirely
        network_probe_url: URL hit with HEAD to decide reachability
        network_probe_timeout: Seconds before the probe gives up
        local_timeout: Hard limit for one local recognition call, in seconds
        cloud_timeout: Hard limit for one cloud recognition call, in seconds
        confidence_floors: Minimum confidence per field, enforced last; merged over the defaults
        enable_analytics: Record error and timing samples
    """
    cloud_api_key: Optional[str] = None
    quota_ceiling: int = 1000
    quota_period_days: int = 30
    force_offline: bool = False
    network_probe_url: str = "https://www.google.com/favicon.ico"
    network_probe_timeout: float = 10.0
    local_timeout: float = 30.0
    cloud_timeout: float = 60.0
    confidence_floors: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_FLOORS)
    )
    enable_analytics: bool = True
    gemini_model: str = "gemini-2.5-flash"
    ocr_languages: List[str] = field(default_factory=lambda: ["en"])
    ocr_gpu: bool = False

    @property
    def has_cloud_credentials(self) -> bool:
        return bool(self.cloud_api_key)

    def floor_for(self, field_name: str) -> float:
        return float(self.confidence_floors.get(field_name, 0.0))

    def with_overrides(self, **changes) -> "PipelineConfig":
        return replace(self, **changes)
