"""Configuration package (Facade).

Re-exports the runtime configuration types so callers import them from a single,
stable path:

	from infrasys.services.config import InfrasysConfig

The Infra.toml / Infra.lock data model lives in ``infrasys.models``; this package
only covers process-level settings (environment variables, CLI overrides).
"""

from infrasys.services.config.infrasys_config import InfrasysConfig

__all__ = ["InfrasysConfig"]
