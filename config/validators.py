from typing import Dict, Any, List, Tuple, Literal
from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# ALGORITHMS - COMPOSITION VALIDATORS
# =============================================================================

class ContextConfig(BaseModel):
    """Scene metric thresholds used by the context analyzer"""
    small_area_threshold: float = Field(gt=0.0, lt=1.0, default=0.15)
    medium_area_threshold: float = Field(gt=0.0, lt=1.0, default=0.35)
    edge_margin: float = Field(ge=0.0, le=0.5, default=0.03)
    excessive_headroom: float = Field(ge=0.0, le=1.0, default=0.4)
    cutoff_margin: float = Field(ge=0.0, le=0.5, default=0.01)
    portrait_headroom_min: float = Field(ge=0.0, le=1.0, default=0.05)
    portrait_headroom_max: float = Field(ge=0.0, le=1.0, default=0.4)

    @model_validator(mode='after')
    def validate_thresholds(self) -> 'ContextConfig':
        """Ensure size and headroom thresholds are ordered"""
        if self.small_area_threshold >= self.medium_area_threshold:
            raise ValueError('small_area_threshold must be < medium_area_threshold')
        if self.portrait_headroom_min >= self.portrait_headroom_max:
            raise ValueError('portrait_headroom_min must be < portrait_headroom_max')
        return self


class RuleOfThirdsConfig(BaseModel):
    """Rule of thirds scoring constants"""
    thirds: List[float] = Field(default=[1.0 / 3.0, 2.0 / 3.0])
    intersection_tolerance: float = Field(gt=0.0, le=1.0, default=0.18)
    line_tolerance: float = Field(gt=0.0, le=1.0, default=0.15)
    large_subject_multiplier: float = Field(gt=0.0, le=5.0, default=1.8)
    default_multiplier: float = Field(gt=0.0, le=5.0, default=1.2)
    falloff_exponent: float = Field(gt=0.0, le=5.0, default=0.7)
    vertical_line_weight: float = Field(ge=0.0, le=1.0, default=0.6)
    horizontal_line_weight: float = Field(ge=0.0, le=1.0, default=0.4)
    line_score_weight: float = Field(ge=0.0, le=1.0, default=0.85)
    portrait_area_max: float = Field(gt=0.0, le=1.0, default=0.4)
    portrait_aspect_max: float = Field(gt=0.0, le=10.0, default=1.2)
    eye_level_ratio: float = Field(ge=0.0, le=1.0, default=0.25)
    perfect_threshold: float = Field(ge=0.0, le=1.0, default=0.7)
    good_threshold: float = Field(ge=0.0, le=1.0, default=0.4)
    good_line_threshold: float = Field(ge=0.0, le=1.0, default=0.7)
    almost_line_threshold: float = Field(ge=0.0, le=1.0, default=0.4)
    headroom_check_min_size: Literal["small", "medium", "large"] = "medium"

    @field_validator('thirds')
    @classmethod
    def validate_thirds(cls, v: List[float]) -> List[float]:
        if len(v) != 2 or not (0.0 < v[0] < v[1] < 1.0):
            raise ValueError(f'thirds must be two ascending values in (0, 1), got: {v}')
        return v

    @model_validator(mode='after')
    def validate_line_weights(self) -> 'RuleOfThirdsConfig':
        """Ensure line weights sum to 1.0"""
        total = self.vertical_line_weight + self.horizontal_line_weight
        if not (0.99 <= total <= 1.01):
            raise ValueError(f'Line weights must sum to 1.0, got {total:.4f}')
        return self


class CenterFramingConfig(BaseModel):
    """Center framing scoring constants"""
    center: List[float] = Field(default=[0.5, 0.5])
    center_tolerance: float = Field(gt=0.0, le=1.0, default=0.12)
    base_weight: float = Field(ge=0.0, le=1.0, default=0.8)
    symmetry_weight: float = Field(ge=0.0, le=1.0, default=0.2)
    min_safety_margin: float = Field(ge=0.0, le=0.5, default=0.03)
    perfect_symmetry: float = Field(ge=0.0, le=1.0, default=0.8)
    symmetry_overlay_threshold: float = Field(ge=0.0, le=1.0, default=0.7)
    direction_deadband: float = Field(ge=0.0, le=0.5, default=0.05)

    @model_validator(mode='after')
    def weights_sum_to_one(self) -> 'CenterFramingConfig':
        total = self.base_weight + self.symmetry_weight
        if not (0.99 <= total <= 1.01):
            raise ValueError(f'Center framing weights must sum to 1.0, got {total:.4f}')
        return self


class SymmetryConfig(BaseModel):
    """Symmetry strategy constants"""
    center: List[float] = Field(default=[0.5, 0.5])
    symmetry_weight: float = Field(ge=0.0, le=1.0, default=0.8)
    centering_weight: float = Field(ge=0.0, le=1.0, default=0.2)
    centering_penalty: float = Field(gt=0.0, le=20.0, default=4.0)
    perfect_symmetry: float = Field(ge=0.0, le=1.0, default=0.8)
    perfect_centering: float = Field(ge=0.0, le=1.0, default=0.7)
    good_symmetry: float = Field(ge=0.0, le=1.0, default=0.6)
    left_weighted_below: float = Field(ge=0.0, le=1.0, default=0.45)
    right_weighted_above: float = Field(ge=0.0, le=1.0, default=0.55)

    @model_validator(mode='after')
    def validate_balance_band(self) -> 'SymmetryConfig':
        total = self.symmetry_weight + self.centering_weight
        if not (0.99 <= total <= 1.01):
            raise ValueError(f'Symmetry weights must sum to 1.0, got {total:.4f}')
        if self.left_weighted_below > self.right_weighted_above:
            raise ValueError('left_weighted_below must be <= right_weighted_above')
        return self


class SymmetryScorerConfig(BaseModel):
    """Frame sample downsampling for the symmetry scorer"""
    target_size: int = Field(ge=8, le=512, default=64)
    row_samples: int = Field(ge=1, le=512, default=32)
    column_step: int = Field(ge=1, le=16, default=2)


class OverlayConfig(BaseModel):
    """Overlay geometry settings"""
    safety_zone_margin: float = Field(ge=0.0, le=0.5, default=0.05)
    crosshair_size: float = Field(gt=0.0, le=500.0, default=24.0)


class CompositionConfig(BaseModel):
    """Complete composition configuration"""
    context: ContextConfig = Field(default_factory=ContextConfig)
    rule_of_thirds: RuleOfThirdsConfig = Field(default_factory=RuleOfThirdsConfig)
    center_framing: CenterFramingConfig = Field(default_factory=CenterFramingConfig)
    symmetry: SymmetryConfig = Field(default_factory=SymmetryConfig)
    symmetry_scorer: SymmetryScorerConfig = Field(default_factory=SymmetryScorerConfig)
    overlays: OverlayConfig = Field(default_factory=OverlayConfig)

    model_config = {"extra": "forbid"}


# =============================================================================
# ALGORITHMS - BLUR VALIDATORS
# =============================================================================

class PremiumRefinementConfig(BaseModel):
    """High intensity multi-radius refinement"""
    enabled: bool = True
    intensity_threshold: float = Field(ge=0.0, le=100.0, default=8.0)
    radii: List[float] = Field(default=[2.0, 4.0, 8.0, 16.0])
    weights: List[float] = Field(default=[0.4, 0.3, 0.2, 0.1])
    s_curve: List[Tuple[float, float]] = Field(
        default=[(0.0, 0.0), (0.25, 0.1), (0.5, 0.5), (0.75, 0.9), (1.0, 1.0)]
    )

    @model_validator(mode='after')
    def validate_blend(self) -> 'PremiumRefinementConfig':
        """Radii and weights pair up and weights sum to 1.0"""
        if len(self.radii) != len(self.weights):
            raise ValueError('radii and weights must have the same length')
        if any(r <= 0 for r in self.radii):
            raise ValueError('radii must be positive')
        total = sum(self.weights)
        if not (0.99 <= total <= 1.01):
            raise ValueError(f'Blend weights must sum to 1.0, got {total:.4f}')
        xs = [p[0] for p in self.s_curve]
        if len(xs) < 2 or xs != sorted(xs):
            raise ValueError('s_curve control points must be sorted by input value')
        return self


class MaskRefinementConfig(BaseModel):
    """Soft-edge mask refinement constants"""
    max_intensity: float = Field(gt=0.0, le=100.0, default=20.0)
    reference_dimension: float = Field(gt=0.0, default=1000.0)
    min_scale: float = Field(gt=0.0, le=10.0, default=0.5)
    open_radius: float = Field(ge=0.0, le=10.0, default=0.5)
    expand_base: float = Field(ge=0.0, le=20.0, default=1.5)
    expand_intensity: float = Field(ge=0.0, le=20.0, default=3.5)
    feather_base: float = Field(ge=0.0, le=20.0, default=2.5)
    feather_intensity: float = Field(ge=0.0, le=20.0, default=4.0)
    second_pass_threshold: float = Field(ge=0.0, le=1.0, default=0.3)
    second_pass_base: float = Field(ge=0.0, le=20.0, default=1.5)
    second_pass_intensity: float = Field(ge=0.0, le=20.0, default=6.0)
    contrast_base: float = Field(gt=0.0, le=5.0, default=1.2)
    contrast_intensity: float = Field(ge=0.0, le=5.0, default=0.3)
    brightness_base: float = Field(ge=-1.0, le=1.0, default=0.05)
    brightness_intensity: float = Field(ge=-1.0, le=1.0, default=0.1)
    gamma_base: float = Field(gt=0.0, le=1.0, default=0.95)
    gamma_intensity: float = Field(ge=0.0, le=0.5, default=0.1)
    premium: PremiumRefinementConfig = Field(default_factory=PremiumRefinementConfig)

    @model_validator(mode='after')
    def validate_gamma(self) -> 'MaskRefinementConfig':
        """Gamma stays positive across the whole intensity range"""
        if self.gamma_base - self.gamma_intensity <= 0:
            raise ValueError('gamma_base - gamma_intensity must be > 0')
        return self


class BlurConfig(BaseModel):
    """Background blur compositing settings"""
    max_intensity: float = Field(gt=0.0, le=100.0, default=20.0)
    edge_extend_sigmas: float = Field(gt=0.0, le=10.0, default=3.0)
    default_preview_size: List[int] = Field(default=[300, 300])
    subject_highlight_color: List[int] = Field(default=[255, 255, 255])

    @field_validator('default_preview_size')
    @classmethod
    def validate_preview_size(cls, v: List[int]) -> List[int]:
        if len(v) != 2 or any(dim <= 0 or dim > 4096 for dim in v):
            raise ValueError(f'default_preview_size must be [width, height] in 1-4096, got: {v}')
        return v


class AlgorithmsConfig(BaseModel):
    """Complete algorithms domain configuration"""
    composition: CompositionConfig
    mask_refinement: MaskRefinementConfig
    blur: BlurConfig

    model_config = {"extra": "forbid"}


# =============================================================================
# SYSTEM DOMAIN VALIDATORS
# =============================================================================

class StoreLimitsConfig(BaseModel):
    """Limits of one bounded cache store"""
    count_limit: int = Field(ge=1, le=1000)
    cost_limit_mb: float = Field(gt=0, le=4096)

    @property
    def cost_limit_bytes(self) -> int:
        return int(self.cost_limit_mb * 1024 * 1024)


class MemoryPressureConfig(BaseModel):
    threshold_percent: float = Field(gt=0.0, le=100.0, default=90.0)


class CacheConfig(BaseModel):
    """Mask and result cache configuration"""
    bytes_per_pixel: int = Field(ge=1, le=16, default=4)
    mask_cache: StoreLimitsConfig = Field(
        default_factory=lambda: StoreLimitsConfig(count_limit=5, cost_limit_mb=20)
    )
    result_cache: StoreLimitsConfig = Field(
        default_factory=lambda: StoreLimitsConfig(count_limit=20, cost_limit_mb=100)
    )
    memory_pressure: MemoryPressureConfig = Field(default_factory=MemoryPressureConfig)

    model_config = {"extra": "forbid"}


class SessionConfig(BaseModel):
    """Editing session lifetime"""
    max_session_age_s: float = Field(gt=0, le=3600, default=180.0)
    check_interval_s: float = Field(gt=0, le=600, default=30.0)

    @model_validator(mode='after')
    def validate_interval(self) -> 'SessionConfig':
        if self.check_interval_s > self.max_session_age_s:
            raise ValueError('check_interval_s must be <= max_session_age_s')
        return self


class LoggingFeaturesConfig(BaseModel):
    """Logging features configuration"""
    composition_scores: bool = False
    cache_events: bool = True
    system_metrics: bool = True


class LoggingConfig(BaseModel):
    """Complete logging configuration"""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["structured", "simple"] = "simple"
    file_enabled: bool = False
    file_path: str = "logs/klick.log"
    max_file_size_mb: int = Field(ge=1, le=1000, default=10)
    backup_count: int = Field(ge=1, le=10, default=3)
    console_output: bool = True
    features: LoggingFeaturesConfig = Field(default_factory=LoggingFeaturesConfig)

    model_config = {"extra": "forbid"}


class ThreadingConfig(BaseModel):
    """Threading configuration"""
    composition_workers: int = Field(ge=1, le=8, default=1)
    blur_workers: int = Field(ge=1, le=32, default=2)
    thread_timeout: float = Field(gt=0, le=300, default=30.0)


class MonitorConfig(BaseModel):
    max_samples: int = Field(ge=1, le=10000, default=100)


class PerformanceConfig(BaseModel):
    """Complete performance configuration"""
    threading: ThreadingConfig = Field(default_factory=ThreadingConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)

    model_config = {"extra": "allow"}


class SystemConfig(BaseModel):
    """Complete system domain configuration"""
    cache: CacheConfig
    session: SessionConfig
    logging: LoggingConfig
    performance: PerformanceConfig

    model_config = {"extra": "forbid"}


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_composition_config(config: Dict[str, Any]) -> CompositionConfig:
    """Validate composition configuration"""
    return CompositionConfig(**config)


def validate_refinement_config(config: Dict[str, Any]) -> MaskRefinementConfig:
    """Validate mask refinement configuration"""
    return MaskRefinementConfig(**config)


def validate_algorithms_config(config: Dict[str, Any]) -> AlgorithmsConfig:
    """
    Validate complete algorithms domain configuration

    Args:
        config: Algorithms configuration dictionary

    Returns:
        Validated AlgorithmsConfig model

    Raises:
        ValidationError: If configuration is invalid
    """
    return AlgorithmsConfig(**config)


def validate_system_config(config: Dict[str, Any]) -> SystemConfig:
    """
    Validate system configuration

    Args:
        config: System configuration dictionary

    Returns:
        Validated SystemConfig model

    Raises:
        ValidationError: If configuration is invalid
    """
    return SystemConfig(**config)


def validate_all_domains(
        algorithms: Dict[str, Any],
        system: Dict[str, Any]
) -> Tuple[AlgorithmsConfig, SystemConfig]:
    """Validate all domain configurations at once"""
    alg = validate_algorithms_config(algorithms)
    sys_config = validate_system_config(system)

    return alg, sys_config


def validate_domain_consistency(
        algorithms: AlgorithmsConfig,
        system: SystemConfig
) -> bool:
    """
    Check cross-domain consistency

    Validates:
    - Refinement and compositing share the same intensity scale
    - Premium refinement threshold lies inside the intensity scale
    """
    refinement = algorithms.mask_refinement
    if refinement.max_intensity != algorithms.blur.max_intensity:
        raise ValueError(
            f'Refinement max intensity ({refinement.max_intensity}) != '
            f'blur max intensity ({algorithms.blur.max_intensity})'
        )

    if refinement.premium.enabled and refinement.premium.intensity_threshold > refinement.max_intensity:
        raise ValueError(
            f'Premium threshold ({refinement.premium.intensity_threshold}) exceeds '
            f'max intensity ({refinement.max_intensity})'
        )

    return True


def quick_validate_algorithms(config: Dict[str, Any]) -> bool:
    try:
        validate_algorithms_config(config)
        return True
    except ValueError:
        return False


def quick_validate_system(config: Dict[str, Any]) -> bool:
    try:
        validate_system_config(config)
        return True
    except ValueError:
        return False


__all__ = [
    'AlgorithmsConfig',
    'SystemConfig',
    'CompositionConfig',
    'MaskRefinementConfig',
    'BlurConfig',
    'CacheConfig',
    'SessionConfig',
    'LoggingConfig',
    'PerformanceConfig',
    'validate_composition_config',
    'validate_refinement_config',
    'validate_algorithms_config',
    'validate_system_config',
    'validate_all_domains',
    'validate_domain_consistency',
    'quick_validate_algorithms',
    'quick_validate_system',
]
