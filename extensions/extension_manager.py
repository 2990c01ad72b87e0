"""Extension manager: discovers and dispatches lifecycle hooks."""

import os
import importlib
import inspect
from extensions.base_extension import Extension
from summarizer.log import build_file_logger


class ExtensionManager:
    """Discovers extension modules and dispatches hook calls."""

    def __init__(self, config):
        self.config = config
        self.extensions: list[Extension] = []
        self._logger = build_file_logger("extensions.manager", config.log_dir, "extensions.log")

    def discover_extensions(self, extensions_dir: str | None = None):
        """Scan the builtin extensions directory and register them."""
        if extensions_dir is None:
            extensions_dir = os.path.join(
                os.path.dirname(os.path.abspath(__file__)), "builtin"
            )

        if not os.path.isdir(extensions_dir):
            return

        enabled_map = self.config.extensions.enabled_map
        for filename in sorted(os.listdir(extensions_dir)):
            if not filename.endswith(".py") or filename.startswith("_"):
                continue

            module_name = f"extensions.builtin.{filename[:-3]}"
            try:
                module = importlib.import_module(module_name)
            except ImportError as e:
                self._logger.error("Failed to load %s: %s", module_name, e)
                continue
            for _, obj in inspect.getmembers(module, inspect.isclass):
                if issubclass(obj, Extension) and obj is not Extension and obj.name:
                    ext = obj(self.config)
                    override = enabled_map.get(obj.name)
                    if override is not None:
                        ext.enabled = override
                    if ext.enabled:
                        self.extensions.append(ext)

    def register(self, ext: Extension):
        self.extensions.append(ext)

    async def dispatch(self, hook_name: str, **kwargs):
        """
        Call the matching hook on all enabled extensions.
        Returns the last non-None result.
        """
        method_name = f"on_{hook_name}"
        result = None

        for ext in self.extensions:
            if not ext.enabled:
                continue
            method = getattr(ext, method_name, None)
            if method is None:
                continue
            try:
                ret = await method(**kwargs)
                if ret is not None:
                    result = ret
            except Exception as e:
                self._logger.exception("Extension '%s' hook '%s' failed: %s", ext.name, hook_name, e)

        return result
