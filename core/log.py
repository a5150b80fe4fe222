from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once; Streamlit reruns the script on every interaction."""
    root = logging.getLogger()
    if any(getattr(h, "_resto_recon", False) for h in root.handlers):
        root.setLevel(level)
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._resto_recon = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(level)
