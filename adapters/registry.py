"""
Singleton AdapterRegistry with auto-discovery.

``auto_discover`` scans ``adapters/*_adapter.py`` for functions decorated
with ``@adapter`` and keys them by ``(provider, action)``.  Discovery runs
lazily on first lookup, so importing the registry is cheap.
"""

from __future__ import annotations

import importlib
import inspect
import logging
import pathlib
from typing import Callable, Dict, List, Optional, Tuple

from connectors.errors import ConfigurationError

logger = logging.getLogger(__name__)

_ADAPTERS_DIR = pathlib.Path(__file__).resolve().parent


class AdapterRegistry:
    """Process-wide singleton that maps (provider, action) → adapter callable."""

    _instance: "AdapterRegistry | None" = None

    def __new__(cls) -> "AdapterRegistry":
        if cls._instance is None:
            inst = super().__new__(cls)
            inst._adapters: Dict[Tuple[str, str], Callable] = {}
            inst._discovered = False
            cls._instance = inst
        return cls._instance

    def register(self, provider: str, action: str, adapter_fn: Callable) -> None:
        key = (provider, action)
        if key in self._adapters and self._adapters[key] is not adapter_fn:
            raise RuntimeError(f"Duplicate adapter registered for {provider}.{action}")
        self._adapters[key] = adapter_fn

    def get(self, provider: str, action: str) -> Callable:
        """
        Return the adapter for ``(provider, action)``.

        Raises
        ------
        ConfigurationError – no adapter registered for the pair
        """
        self._ensure_discovered()
        try:
            return self._adapters[(provider, action)]
        except KeyError:
            raise ConfigurationError(
                f"Unsupported action '{action}' for {provider}", provider=provider
            ) from None

    def has(self, provider: str, action: str) -> bool:
        self._ensure_discovered()
        return (provider, action) in self._adapters

    def list_actions(self, provider: Optional[str] = None) -> Dict[str, List[str]]:
        """``{provider: [action, ...]}``, optionally for a single provider."""
        self._ensure_discovered()
        actions: Dict[str, List[str]] = {}
        for prov, action in sorted(self._adapters):
            if provider is None or prov == provider:
                actions.setdefault(prov, []).append(action)
        return actions

    # ── auto-discovery ──────────────────────────────────────────────────

    def _ensure_discovered(self) -> None:
        if not self._discovered:
            self.auto_discover()

    def auto_discover(self, adapters_dir: pathlib.Path = _ADAPTERS_DIR) -> None:
        """
        Scan ``*_adapter.py`` under *adapters_dir* for ``@adapter`` functions.
        """
        adapter_files = sorted(adapters_dir.glob("*_adapter.py"))

        if not adapter_files:
            raise RuntimeError(f"No *_adapter.py files found in {adapters_dir}")

        for adapter_file in adapter_files:
            module_name = f"{adapters_dir.name}.{adapter_file.stem}"
            try:
                module = importlib.import_module(module_name)
            except ImportError as exc:
                raise RuntimeError(
                    f"Failed to load adapters from {adapter_file.name}: {exc}"
                ) from exc

            for name, obj in inspect.getmembers(module, inspect.isfunction):
                if not getattr(obj, "is_adapter", False):
                    continue
                # helpers imported from another adapter module are skipped
                if obj.__module__ != module.__name__:
                    continue
                self.register(obj.provider, obj.action, obj)

        self._discovered = True
        logger.info(
            "Registered %d adapters from %d files",
            len(self._adapters),
            len(adapter_files),
        )

    # ── reset (for tests) ──────────────────────────────────────────────

    @classmethod
    def reset(cls) -> None:
        """Destroy singleton — only useful in test teardown."""
        cls._instance = None
