"""School financial projection engine: pure Python, no UI."""


def run_projection(*args, **kwargs):
    from projection.orchestrator import run_projection as _run_projection
    return _run_projection(*args, **kwargs)


def run_projection_sync(*args, **kwargs):
    from projection.orchestrator import run_projection_sync as _run_projection_sync
    return _run_projection_sync(*args, **kwargs)


__all__ = ["run_projection", "run_projection_sync"]
