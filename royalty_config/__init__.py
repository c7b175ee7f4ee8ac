"""
royalty_config -- single public entrypoint for royalty configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Nothing else reads configuration files.
    ``build_royalty_policy()`` turns the result into the kernel's
    ``RoyaltyPolicy``.

Architecture position:
    Configuration -- sits above ``royalty_kernel``.  The kernel MUST NEVER
    import from ``royalty_config``.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ValueError`` -- schema or validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``ROYALTY_CONFIG_TRACE`` log entry carrying the config id, version and
    checksum, tying recorded royalties to the configuration in force.
"""

from __future__ import annotations

from pathlib import Path

from royalty_config.bridges import build_royalty_policy
from royalty_config.loader import load_config_file
from royalty_config.schema import RoyaltyConfig, SharesDef
from royalty_config.validator import validate_configuration
from royalty_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    name: str = "default",
    config_dir: Path | None = None,
) -> RoyaltyConfig:
    """The ONLY public configuration entrypoint.

    Args:
        name: Configuration set name; loads ``<config_dir>/<name>.yaml``.
        config_dir: Override path to configuration sets.  Defaults to
            royalty_config/sets/.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = Path(sets_dir) / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"No royalty configuration set named {name!r} in {sets_dir}")

    config = load_config_file(path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={"detail": warning})

    _logger.info(
        "ROYALTY_CONFIG_TRACE",
        extra={
            "trace_type": "ROYALTY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
        },
    )
    return config


__all__ = [
    "RoyaltyConfig",
    "SharesDef",
    "build_royalty_policy",
    "get_active_config",
]
