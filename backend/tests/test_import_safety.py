"""
test_import_safety.py — Import and layering checks.

Verifies that:
  1. Every otplus module imports cleanly without a broker, network or
     running worker (Celery only connects on first send).
  2. The engine layer stays pure: no FastAPI, Celery or HTTP dependencies
     leak into services/ or models/analysis_models.
  3. The worker protocol does not import the HTTP app.

No database, network, or external services are required.
"""

import sys
import os
import importlib
import inspect
import pytest

_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# All modules import without side effects that need external services
# ---------------------------------------------------------------------------

_PURE_SERVICE_MODULES = [
    "otplus.config",
    "otplus.services.numeric",
    "otplus.services.entry_classifier",
    "otplus.services.override_resolver",
    "otplus.services.day_context",
    "otplus.services.tail_attribution",
    "otplus.services.rate_engine",
    "otplus.services.overtime_engine",
    "otplus.services.perf_monitor",
    "otplus.services.logging_config",
]

_WIRED_MODULES = [
    "otplus.models.analysis_models",
    "otplus.models.worker_models",
    "otplus.services.middleware",
    "otplus.workers.protocol",
    "otplus.workers.celery_app",
    "otplus.workers.tasks",
    "otplus.workers.dispatcher",
    "otplus.api.analysis_routes",
    "otplus.main",
]


class TestModuleImports:

    @pytest.mark.parametrize("module_path", _PURE_SERVICE_MODULES + _WIRED_MODULES)
    def test_module_imports(self, module_path):
        try:
            mod = importlib.import_module(module_path)
            assert mod is not None, f"Module {module_path} is None after import"
        except Exception as e:
            pytest.fail(f"{module_path} raised on import: {type(e).__name__}: {e}")


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------

_ENGINE_MODULES = [m for m in _PURE_SERVICE_MODULES if m != "otplus.config"] + [
    "otplus.models.analysis_models",
]


class TestEngineIsStandalone:
    """The calculation core must be usable without the HTTP or worker stack."""

    @pytest.mark.parametrize("module_path", _ENGINE_MODULES)
    def test_no_framework_imports(self, module_path):
        src = inspect.getsource(importlib.import_module(module_path))
        for forbidden in ("import fastapi", "from fastapi", "import celery", "from celery", "import requests"):
            assert forbidden not in src, f"{module_path} must not depend on '{forbidden}'"

    def test_protocol_does_not_import_app(self):
        src = inspect.getsource(importlib.import_module("otplus.workers.protocol"))
        assert "otplus.main" not in src
        assert "otplus.api" not in src

    def test_overtime_engine_has_no_global_state_mutation(self):
        """analyze() is reentrant: the module keeps no per-run caches."""
        import otplus.services.overtime_engine as oe
        src = inspect.getsource(oe)
        assert "global " not in src
