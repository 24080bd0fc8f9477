"""
Application configuration for the health anomaly engine.

Provides environment-aware settings with conservative defaults. All detection
thresholds are configurable to avoid hard-coded "magic numbers".
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnomalyThresholds(BaseModel):
	"""
	Thresholds for the deviation rule and severity tiers.

	Rationale:
	- A metric is flagged only when it lies strictly beyond threshold_std_dev.
	- alert_std_dev splits WARNING from ALERT.
	- Zero-variance metrics use an absolute tolerance instead of a z-score.
	"""

	threshold_std_dev: float = Field(2.0, gt=0.0, description="Deviation count that flags a metric")
	alert_std_dev: float = Field(3.0, gt=0.0, description="Deviation count that escalates to ALERT")
	std_floor: float = Field(1e-9, ge=0.0, description="Std below this is treated as zero variance")

	zero_variance_relative_tolerance: float = Field(
		0.01, ge=0.0, description="Fraction of the mean tolerated when no variance was observed"
	)
	zero_variance_floors: Dict[str, float] = Field(
		default_factory=lambda: {
			"STEPS": 50.0,
			"DISTANCE": 50.0,
			"CALORIES": 10.0,
			"SCREEN_TIME": 5.0,
			"SLEEP": 5.0,
			"HEART_RATE": 1.0,
			"HRV": 1.0,
			"MOOD": 0.5,
		}
	)

	@model_validator(mode="after")
	def _check_order(self) -> "AnomalyThresholds":
		if self.alert_std_dev < self.threshold_std_dev:
			raise ValueError("alert_std_dev must be >= threshold_std_dev")
		return self


class BaselineConfig(BaseModel):
	"""
	Configuration for baseline estimation.

	Notes:
	- min_days: samples required before a baseline is valid (never below 7).
	- window_days: size of the rolling history window requested from the feed.
	- min_metric_points: recorded values a metric needs to enter the baseline.
	- max_age_hours: a baseline older than this is recomputed.
	- missing_when_zero: metrics whose 0 means "not recorded".
	"""

	min_days: int = Field(7, ge=7)
	window_days: int = Field(30, ge=7)
	min_metric_points: int = Field(3, ge=1)
	max_age_hours: float = Field(24.0, gt=0.0)
	missing_when_zero: List[str] = Field(default_factory=lambda: ["HEART_RATE", "HRV"])


class MLConfig(BaseModel):
	"""
	Optional ML signal configuration.
	"""

	enabled: bool = True
	confidence_threshold: float = Field(0.7, ge=0.0, le=1.0)
	timeout_seconds: float = Field(0.2, gt=0.0)


class AnomalyConfig(BaseModel):
	thresholds: AnomalyThresholds = AnomalyThresholds()
	baselines: BaselineConfig = BaselineConfig()
	ml: MLConfig = MLConfig()


class Config(BaseSettings):
	"""
	Global configuration with environment overrides.
	"""

	model_config = SettingsConfigDict(
		env_prefix="HEALTHWATCH_",
		env_nested_delimiter="__",
		env_file=".env",
		extra="ignore",
	)

	log_level: str = Field("INFO", description="Default logging level")
	logs_dir: Path = Field(Path("logs"), description="Directory for log files")
	anomaly: AnomalyConfig = AnomalyConfig()

	def model_post_init(self, __context: object) -> None:
		self.logs_dir.mkdir(parents=True, exist_ok=True)


config = Config()
