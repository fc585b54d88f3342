"""
Risk Model Configuration

The declarative table behind the engine: per-indicator weight, polarity
and default thresholds, the warning-score calibration point and the risk
level bands. Loaded once from YAML and validated with pydantic; every
problem surfaces as a ConfigurationError at load time.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from crashwatch.core.errors import ConfigurationError, ErrorCodes, wrap_exception

from .classifier import RiskBands, RiskLevel
from .indicators import IndicatorKind, IndicatorReading, Polarity
from .normalizer import DEFAULT_WARNING_SCORE, check_reading
from .weights import WeightTable

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = Path(__file__).parent.parent / "config" / "risk_model.yaml"


# =============================================================================
# Pydantic Models - Document Schema
# =============================================================================


class IndicatorConfig(BaseModel):
    """One row of the indicator table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    weight: float = Field(..., ge=0, description="Relative importance")
    polarity: Polarity = Field(..., description="Direction in which values become dangerous")
    historical_avg: float = Field(..., description="Long-run average; scores 0")
    warning_level: float = Field(..., description="Start of the warning band")
    danger_level: float = Field(..., description="Start of the danger band; scores 100")


class RiskBandConfig(BaseModel):
    """Lower bound of one risk level band."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    level: RiskLevel
    lower: float = Field(..., ge=0, le=100)


class RiskModelConfig(BaseModel):
    """Schema of the risk model YAML document."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: str = Field(default="default", min_length=1)
    warning_score: float = Field(default=DEFAULT_WARNING_SCORE, gt=0, lt=100)
    indicators: Dict[IndicatorKind, IndicatorConfig]
    risk_bands: List[RiskBandConfig] = Field(..., min_length=1)

    @field_validator("indicators", mode="before")
    @classmethod
    def parse_indicator_keys(cls, v: Any) -> Any:
        """Accept enum values, member names and upstream keys."""
        if isinstance(v, Mapping):
            return {IndicatorKind.parse(key): row for key, row in v.items()}
        return v

    @model_validator(mode="after")
    def check_indicator_coverage(self) -> "RiskModelConfig":
        absent = [kind.value for kind in IndicatorKind if kind not in self.indicators]
        if absent:
            raise ValueError(f"indicators missing from model: {', '.join(absent)}")
        return self


# =============================================================================
# Validated Runtime Model
# =============================================================================


@dataclass(frozen=True)
class RiskModel:
    """Immutable, validated engine configuration."""

    version: str
    weights: WeightTable
    bands: RiskBands
    warning_score: float
    defaults: Mapping[IndicatorKind, IndicatorReading]

    @classmethod
    def from_config(cls, config: RiskModelConfig) -> "RiskModel":
        """
        Build the runtime model, enforcing cross-field invariants.

        Raises:
            ConfigurationError: If weights, bands or default thresholds are invalid
        """
        weights = WeightTable(
            {kind: row.weight for kind, row in config.indicators.items()},
            version=config.version,
        )
        bands = RiskBands([(band.level, band.lower) for band in config.risk_bands])

        defaults: Dict[IndicatorKind, IndicatorReading] = {}
        for kind in IndicatorKind:
            row = config.indicators[kind]
            template = IndicatorReading(
                kind=kind,
                value=row.historical_avg,
                historical_avg=row.historical_avg,
                warning_level=row.warning_level,
                danger_level=row.danger_level,
                polarity=row.polarity,
            )
            problem = check_reading(template)
            if problem is not None:
                raise ConfigurationError(
                    ErrorCodes.CONFIG_THRESHOLDS_INVALID,
                    detail=f"{kind.value}: {problem.detail}",
                )
            defaults[kind] = template.with_value(None)

        return cls(
            version=config.version,
            weights=weights,
            bands=bands,
            warning_score=config.warning_score,
            defaults=MappingProxyType(defaults),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "RiskModel":
        """Validate a parsed document and build the model."""
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                ErrorCodes.CONFIG_MODEL_INVALID,
                detail=f"risk model must be a mapping, got {type(data).__name__}",
            )
        try:
            config = RiskModelConfig.model_validate(data)
        except (ValidationError, ValueError) as e:
            raise wrap_exception(e, ErrorCodes.CONFIG_MODEL_INVALID) from e
        return cls.from_config(config)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back into the document shape."""
        return {
            "version": self.version,
            "warning_score": self.warning_score,
            "indicators": {
                kind.value: {
                    "weight": self.weights[kind],
                    "polarity": reading.effective_polarity.value,
                    "historical_avg": reading.historical_avg,
                    "warning_level": reading.warning_level,
                    "danger_level": reading.danger_level,
                }
                for kind, reading in self.defaults.items()
            },
            "risk_bands": [
                {"level": band.level.value, "lower": band.lower} for band in self.bands.bands
            ],
        }


def load_risk_model(path: Optional[Union[str, Path]] = None) -> RiskModel:
    """
    Load and validate a risk model document.

    Args:
        path: YAML file; the packaged default when None

    Returns:
        RiskModel

    Raises:
        ConfigurationError: If the file cannot be read or fails validation
    """
    path = Path(path) if path else DEFAULT_MODEL_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise wrap_exception(e, ErrorCodes.CONFIG_FILE_UNREADABLE, {"path": str(path)}) from e
    except yaml.YAMLError as e:
        raise wrap_exception(e, ErrorCodes.CONFIG_MODEL_INVALID, {"path": str(path)}) from e

    model = RiskModel.from_dict(data)
    logger.info("Loaded risk model %s from %s", model.version, path)
    return model
