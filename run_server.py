#!/usr/bin/env python
"""Script to run the TaskSync API server."""
import os
import sys
from pathlib import Path

# Make the project packages importable when launched from elsewhere
project_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(project_dir))
os.chdir(project_dir)

import uvicorn

from core.settings import SERVER


if __name__ == "__main__":
    uvicorn.run(
        "server.app:create_app",
        factory=True,
        host=SERVER.host,
        port=SERVER.port,
        reload=False,
    )
