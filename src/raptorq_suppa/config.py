"""
YAML configuration for strategies and encoding options.

A config file has two optional top-level sections, `options` (EncodingOptions
fields) and `strategy`. Strategy field entries accept:

    external_bits: <int>      # wire width
    value: <int>              # hardcoded value (external_bits must be 0)
    multiplier: <int>         # wire value = internal / multiplier

The ECC entry takes `algorithm` (none, crc8, crc16, crc32, reed_solomon) and
`nsym` for reed_solomon. The transfer-length trim entry takes `external_bits`
and `pump_multiple`.
"""

import logging
import os
from typing import Any, Dict, Optional

import yaml

from .ecc import ecc_from_config
from .engine import EncodingOptions, exact_options
from .errors import StrategyConfigurationError
from .oti import OTI_FIELDS
from .strategy import Strategy, resolve_strategy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "default_config.yaml")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to YAML config file (default: packaged default_config.yaml)

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    with open(config_path, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise StrategyConfigurationError(f"Config file {config_path} must contain a mapping.")

    logger.info("Loaded configuration from %s", config_path)
    return config


def _linear_remap(path: str, multiplier: Any) -> Dict[str, Any]:
    if not isinstance(multiplier, int) or isinstance(multiplier, bool) or multiplier < 1:
        raise StrategyConfigurationError(f"Provided {path}.multiplier must be a positive int.")

    def to_internal(external):
        return external * multiplier

    def to_external(internal):
        if internal % multiplier != 0:
            return None
        return internal // multiplier

    return {"to_internal": to_internal, "to_external": to_external}


def _field_entry(path: str, entry: Any) -> Any:
    if entry is None:
        return None
    if not isinstance(entry, dict):
        raise StrategyConfigurationError(f"Provided {path} must be a mapping.")

    unknown = sorted(set(entry) - {"external_bits", "value", "multiplier"})
    if unknown:
        raise StrategyConfigurationError(f"Provided {path} has unknown keys: {', '.join(unknown)}.")

    result = {key: entry[key] for key in ("external_bits", "value") if key in entry}
    if "multiplier" in entry:
        result["remap"] = _linear_remap(path, entry["multiplier"])
    return result


def _ecc_entry(path: str, entry: Any) -> Dict[str, Any]:
    if entry is None:
        return {"external_bits": 0}
    if not isinstance(entry, dict):
        raise StrategyConfigurationError(f"Provided {path} must be a mapping.")

    params = dict(entry)
    algorithm = params.pop("algorithm", "none")
    if algorithm in (None, "none"):
        if params:
            raise StrategyConfigurationError(f"Provided {path} has parameters but no algorithm.")
        return {"external_bits": 0}

    generate_ecc, external_bits = ecc_from_config(algorithm, **params)
    return {"external_bits": external_bits, "generate_ecc": generate_ecc}


def _trim_entry(path: str, entry: Any) -> Dict[str, Any]:
    if entry is None:
        return {}
    if not isinstance(entry, dict):
        raise StrategyConfigurationError(f"Provided {path} must be a mapping.")

    unknown = sorted(set(entry) - {"external_bits", "pump_multiple"})
    if unknown:
        raise StrategyConfigurationError(f"Provided {path} has unknown keys: {', '.join(unknown)}.")

    result = {}
    if "external_bits" in entry:
        result["external_bits"] = entry["external_bits"]

    multiple = entry.get("pump_multiple")
    if multiple is not None:
        if not isinstance(multiple, int) or isinstance(multiple, bool) or multiple < 1:
            raise StrategyConfigurationError(f"Provided {path}.pump_multiple must be a positive int.")
        result["pump_transfer_length"] = lambda length: -(-length // multiple) * multiple

    return result


def _section(path: str, value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise StrategyConfigurationError(f"Provided {path} must be a mapping.")
    return value


def build_strategy(config: Dict[str, Any]) -> Strategy:
    """Translate the `strategy` section of a config into a resolved Strategy."""
    section = _section("strategy", config.get("strategy"))
    partial: Dict[str, Any] = {
        key: value for key, value in section.items()
        if key not in ("oti", "encoding_packet", "payload")
    }

    oti = _section("strategy.oti", section.get("oti"))
    if oti:
        partial["oti"] = {
            key: (
                _field_entry(f"strategy.oti.{key}", value)
                if key in dict(OTI_FIELDS) else value
            )
            for key, value in oti.items()
        }

    packet = _section("strategy.encoding_packet", section.get("encoding_packet"))
    if packet:
        partial["encoding_packet"] = {
            key: (
                _ecc_entry(f"strategy.encoding_packet.{key}", value)
                if key == "ecc" else _field_entry(f"strategy.encoding_packet.{key}", value)
            )
            for key, value in packet.items()
        }

    payload = _section("strategy.payload", section.get("payload"))
    if payload:
        partial["payload"] = {
            key: (
                _trim_entry(f"strategy.payload.{key}", value)
                if key == "transfer_length_trim" else value
            )
            for key, value in payload.items()
        }

    return resolve_strategy(partial)


def build_options(config: Dict[str, Any]) -> EncodingOptions:
    """Translate the `options` section of a config into EncodingOptions."""
    return exact_options(config.get("options") or {})
