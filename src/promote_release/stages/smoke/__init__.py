from .runner import SmokeTester
from .server import LocalDistServer, resolve_request
from .stage import stage_smoke_test

__all__ = ["SmokeTester", "LocalDistServer", "resolve_request", "stage_smoke_test"]
