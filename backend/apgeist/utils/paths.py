from __future__ import annotations

import os
from typing import Optional

from ..config import Settings, settings as default_settings


def get_app_data_dir(cfg: Optional[Settings] = None) -> str:
    desired = (cfg or default_settings).app_data_dir
    try:
        os.makedirs(desired, exist_ok=True)
        # Try write test
        test_path = os.path.join(desired, ".wtest")
        with open(test_path, "w", encoding="utf-8") as f:
            f.write("ok")
        os.remove(test_path)
        return desired
    except OSError:
        # Fallback to home directory
        home_fallback = os.path.expanduser("~/.apgeist/data")
        os.makedirs(home_fallback, exist_ok=True)
        return home_fallback
