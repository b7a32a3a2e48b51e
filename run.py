#!/usr/bin/env python3
"""
Admin backend - development server runner.

Puts ``src`` on the Python path and starts uvicorn with the app factory.
"""

import os
import sys

project_root = os.path.dirname(os.path.abspath(__file__))
src_path = os.path.join(project_root, 'src')

if src_path not in sys.path:
    sys.path.insert(0, src_path)


if __name__ == "__main__":
    import uvicorn

    from config import get_settings

    settings = get_settings()
    uvicorn.run(
        "web.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        reload_dirs=[src_path],
        log_level="info",
    )
