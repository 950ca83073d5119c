"""
JSON-based quote configuration for print_quote.

Configuration hierarchy (later overrides earlier):
1. Built-in defaults (this module)
2. .quote.json: explicit path, else next to the uploaded meshes, else the
   current directory, else the user's home directory
3. Environment variables (FILL_FACTOR, MIN_GRAMS_PER_FILE, PACKAGING_GRAMS,
   START_FEE, EXTRA_FILE_FEE)

All configuration objects are frozen: a QuoteConfig is built once at process
start and shared read-only by every estimation and pricing call.

Example .quote.json:
{
    "estimation": {
        "fill_factor": 0.2,
        "densities": {"PLA": 1.25}
    },
    "pricing": {
        "base_fee": 60,
        "shipping_bands": [
            {"limit_grams": 50, "price": 25},
            {"limit_grams": 2000, "price": 160}
        ]
    },
    "uploads": {
        "max_dimension_mm": 250
    }
}

Material tables given in a file are merged over the defaults; shipping bands
replace the default table as a whole.
"""

import json
import logging
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from print_quote.materials import DEFAULT_MATERIAL, normalize_material

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".quote.json"

DEFAULT_DENSITIES = {
    "PLA": 1.24,
    "PETG": 1.27,
    "ABS": 1.04,
    "ASA": 1.07,
    "TPU": 1.21,
}

DEFAULT_MATERIAL_RATES = {
    "PLA": 0.5,
    "PETG": 0.5,
    "ABS": 1,
    "ASA": 1,
    "TPU": 3,
}

# (upper limit in grams, price)
DEFAULT_SHIPPING_BANDS = (
    (50, 22),
    (100, 44),
    (250, 66),
    (500, 88),
    (1000, 132),
    (2000, 154),
)

ENV_OVERRIDES = {
    "FILL_FACTOR": ("estimation", "fill_factor"),
    "MIN_GRAMS_PER_FILE": ("estimation", "min_grams_per_file"),
    "PACKAGING_GRAMS": ("pricing", "packaging_grams"),
    "START_FEE": ("pricing", "base_fee"),
    "EXTRA_FILE_FEE": ("pricing", "per_extra_file_fee"),
}


class ConfigError(ValueError):
    """Invalid configuration value."""


def _as_number(value: Any, name: str) -> Union[int, float]:
    """Coerce to a finite number, keeping whole values as int."""
    if isinstance(value, bool):
        raise ConfigError(f"{name}: expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name}: expected a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ConfigError(f"{name}: must be finite, got {value!r}")
    return int(number) if number.is_integer() else number


def _frozen_table(values: Mapping[str, Any], name: str,
                  allow_zero: bool = False) -> Mapping[str, Union[int, float]]:
    table = {}
    for key, value in dict(values).items():
        number = _as_number(value, f"{name}.{key}")
        if number < 0 or (number == 0 and not allow_zero):
            limit = ">= 0" if allow_zero else "positive"
            raise ConfigError(f"{name}.{key}: must be {limit}, got {value!r}")
        table[normalize_material(key)] = number
    return MappingProxyType(table)


@dataclass(frozen=True)
class ShippingBand:
    """Parcel price for every shippable weight up to ``limit_grams``."""
    limit_grams: Union[int, float]
    price: Union[int, float]

    @classmethod
    def coerce(cls, value: Any) -> 'ShippingBand':
        """Build a band from a ShippingBand, a (limit, price) pair or a dict."""
        if isinstance(value, ShippingBand):
            return value
        if isinstance(value, Mapping):
            try:
                limit, price = value["limit_grams"], value["price"]
            except KeyError as exc:
                raise ConfigError(f"shipping band {value!r} is missing {exc}") from None
        else:
            try:
                limit, price = value
            except (TypeError, ValueError):
                raise ConfigError(f"shipping band {value!r} is not a (limit, price) pair") from None
        return cls(
            limit_grams=_as_number(limit, "shipping band limit"),
            price=_as_number(price, "shipping band price"),
        )


@dataclass(frozen=True)
class EstimationConfig:
    """Constants of the volume-to-weight conversion."""
    fill_factor: float = 0.25
    min_grams_per_file: float = 5
    densities: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_DENSITIES))
    default_material: str = DEFAULT_MATERIAL

    def __post_init__(self) -> None:
        object.__setattr__(self, 'fill_factor', _as_number(self.fill_factor, "fill_factor"))
        object.__setattr__(self, 'min_grams_per_file',
                           _as_number(self.min_grams_per_file, "min_grams_per_file"))
        object.__setattr__(self, 'densities', _frozen_table(self.densities, "densities"))
        object.__setattr__(self, 'default_material', normalize_material(self.default_material))

        if not 0 < self.fill_factor <= 1:
            raise ConfigError(f"fill_factor must be in (0, 1], got {self.fill_factor}")
        if self.min_grams_per_file < 0:
            raise ConfigError(f"min_grams_per_file must be >= 0, got {self.min_grams_per_file}")
        if self.default_material not in self.densities:
            raise ConfigError(f"densities has no entry for default material {self.default_material}")


@dataclass(frozen=True)
class PricingConfig:
    """Fee schedule, material rates (per gram) and shipping bands."""
    base_fee: float = 50
    per_extra_file_fee: float = 10
    packaging_grams: float = 30
    material_rates: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_MATERIAL_RATES))
    shipping_bands: Tuple[ShippingBand, ...] = DEFAULT_SHIPPING_BANDS
    currency: str = "kr"
    default_material: str = DEFAULT_MATERIAL

    def __post_init__(self) -> None:
        for name in ("base_fee", "per_extra_file_fee", "packaging_grams"):
            number = _as_number(getattr(self, name), name)
            if number < 0:
                raise ConfigError(f"{name} must be >= 0, got {number}")
            object.__setattr__(self, name, number)
        object.__setattr__(self, 'material_rates',
                           _frozen_table(self.material_rates, "material_rates", allow_zero=True))
        object.__setattr__(self, 'default_material', normalize_material(self.default_material))

        bands = tuple(sorted(
            (ShippingBand.coerce(b) for b in self.shipping_bands),
            key=lambda b: b.limit_grams,
        ))
        if not bands:
            raise ConfigError("shipping_bands must contain at least one band")
        limits = [b.limit_grams for b in bands]
        if len(set(limits)) != len(limits):
            raise ConfigError(f"shipping_bands has duplicate limits: {limits}")
        if any(b.price < 0 for b in bands):
            raise ConfigError("shipping band prices must be >= 0")
        object.__setattr__(self, 'shipping_bands', bands)

        if self.default_material not in self.material_rates:
            raise ConfigError(f"material_rates has no entry for default material {self.default_material}")


@dataclass(frozen=True)
class UploadConfig:
    """Limits applied by the upload validator before estimation."""
    allowed_extensions: Tuple[str, ...] = (".stl", ".obj")
    max_file_size_bytes: int = 100 * 1024 * 1024
    max_dimension_mm: float = 256

    def __post_init__(self) -> None:
        extensions = tuple(
            ext.lower() if ext.startswith(".") else "." + ext.lower()
            for ext in self.allowed_extensions
        )
        object.__setattr__(self, 'allowed_extensions', extensions)
        object.__setattr__(self, 'max_file_size_bytes',
                           int(_as_number(self.max_file_size_bytes, "max_file_size_bytes")))
        object.__setattr__(self, 'max_dimension_mm',
                           _as_number(self.max_dimension_mm, "max_dimension_mm"))
        if self.max_file_size_bytes <= 0 or self.max_dimension_mm <= 0:
            raise ConfigError("upload limits must be positive")


@dataclass(frozen=True)
class ConcurrencyConfig:
    """Worker pool bound for estimating the files of one order."""
    max_workers: int = 4

    def __post_init__(self) -> None:
        workers = _as_number(self.max_workers, "max_workers")
        if not isinstance(workers, int) or workers < 1:
            raise ConfigError(f"max_workers must be a positive integer, got {self.max_workers!r}")
        object.__setattr__(self, 'max_workers', workers)


def _section_to_dict(section: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(section):
        value = getattr(section, f.name)
        if isinstance(value, Mapping):
            value = dict(value)
        elif f.name == "shipping_bands":
            value = [{"limit_grams": b.limit_grams, "price": b.price} for b in value]
        elif isinstance(value, tuple):
            value = list(value)
        out[f.name] = value
    return out


def _section_from_dict(cls: type, data: Mapping[str, Any], defaults: Mapping[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        if key.startswith("_"):
            continue
        if key not in known:
            logger.warning("Unknown config key %s.%s ignored", cls.__name__, key)
            continue
        if key in defaults and isinstance(value, Mapping):
            value = {**defaults[key], **value}
        kwargs[key] = value
    return cls(**kwargs)


@dataclass(frozen=True)
class QuoteConfig:
    """Complete quoting configuration."""
    estimation: EstimationConfig = field(default_factory=EstimationConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    uploads: UploadConfig = field(default_factory=UploadConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-compatible dictionary."""
        return {f.name: _section_to_dict(getattr(self, f.name)) for f in fields(self)}

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_json())
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'QuoteConfig':
        """Create configuration from a dictionary; missing sections use defaults.

        Raises:
            ConfigError: if a value is out of range
        """
        return cls(
            estimation=_section_from_dict(
                EstimationConfig, data.get('estimation', {}), {"densities": DEFAULT_DENSITIES}),
            pricing=_section_from_dict(
                PricingConfig, data.get('pricing', {}), {"material_rates": DEFAULT_MATERIAL_RATES}),
            uploads=_section_from_dict(UploadConfig, data.get('uploads', {}), {}),
            concurrency=_section_from_dict(ConcurrencyConfig, data.get('concurrency', {}), {}),
        )

    @classmethod
    def from_json(cls, json_str: str) -> 'QuoteConfig':
        """Create configuration from JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'QuoteConfig':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
            ConfigError: If a value is out of range
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)


def apply_env_overrides(config: QuoteConfig,
                        environ: Optional[Mapping[str, str]] = None) -> QuoteConfig:
    """Return a copy of ``config`` with deployment environment overrides applied.

    Empty variables are ignored.
    """
    environ = os.environ if environ is None else environ
    sections: Dict[str, Dict[str, Any]] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        raw = environ.get(var, "")
        if not raw.strip():
            continue
        sections.setdefault(section, {})[key] = _as_number(raw.strip(), var)
        logger.debug("Config override from environment: %s=%s", var, raw)

    for section, changes in sections.items():
        config = replace(config, **{section: replace(getattr(config, section), **changes)})
    return config


def find_config_file(
    explicit_config: Optional[Union[str, Path]] = None,
    search_dirs: Iterable[Union[str, Path]] = (),
) -> Optional[Path]:
    """Find the configuration file.

    Search order:
    1. Explicit config path (if provided)
    2. .quote.json in each of ``search_dirs`` (e.g. the upload directory)
    3. .quote.json in the current working directory
    4. ~/.quote.json

    Returns:
        Path to config file if found, None otherwise
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    candidates = [Path(d) / CONFIG_FILENAME for d in search_dirs]
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(Path.home() / CONFIG_FILENAME)
    for candidate in candidates:
        if candidate.exists():
            return candidate

    return None


def load_config(
    explicit_config: Optional[Union[str, Path]] = None,
    search_dirs: Iterable[Union[str, Path]] = (),
    environ: Optional[Mapping[str, str]] = None,
    use_env: bool = True,
) -> QuoteConfig:
    """Load configuration with fallback to defaults.

    An unreadable or malformed file is logged and ignored; out-of-range
    values raise ConfigError.
    """
    config = QuoteConfig()
    config_path = find_config_file(explicit_config, search_dirs)

    if config_path:
        try:
            config = QuoteConfig.load(config_path)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)

    if use_env:
        config = apply_env_overrides(config, environ)
    return config


def create_sample_config(path: Union[str, Path] = CONFIG_FILENAME) -> None:
    """Create a sample configuration file with documentation."""
    sample: Dict[str, Any] = {
        "_comment": "3D print quote configuration",
        "_version": "1.0",
    }
    for name, section in QuoteConfig().to_dict().items():
        sample[name] = section

    sample["estimation"]["_comment"] = "Weight = volume_cm3 * density * fill_factor, floored at min_grams_per_file"
    sample["pricing"]["_comment"] = "total = base_fee + material cost + extra file fees + shipping"
    sample["uploads"]["_comment"] = "Checked before estimation"

    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)

    logger.info("Sample configuration created: %s", path)
