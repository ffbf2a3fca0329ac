"""Small CLI shim exposing the pipeline `main()` entrypoint."""
from __future__ import annotations

from vitals_pipeline.pipeline import main

__all__ = ["main"]


if __name__ == "__main__":
    main()
