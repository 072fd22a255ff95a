"""setuptools hook: embed the frontend bundle before the package is built.

Registered as the ``build_py`` command in pyproject.toml, so wheel, sdist-to-wheel
and editable installs all run the frontend build and ship a fresh
``web_server/generated/resources.zip``.

    WEB_SERVER_FRONTEND_ROOT=/path/to/frontend   # default: parent of this project
    WEB_SERVER_SKIP_FRONTEND_BUILD=1             # embed an existing dist/ as-is
"""

import sys
from pathlib import Path

from setuptools.command.build_py import build_py as _build_py

PROJECT_DIR = Path(__file__).resolve().parent

# PEP 517 frontends do not put the source tree on sys.path
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from web_server.config import BuildSettings  # noqa: E402
from web_server.packager import package_for_build  # noqa: E402
from web_server.resources import ARCHIVE_PATH  # noqa: E402


def embed_frontend(project_dir: Path = PROJECT_DIR, output: Path = ARCHIVE_PATH) -> None:
    settings = BuildSettings()
    root = settings.FRONTEND_ROOT or project_dir.parent
    package_for_build(root, skip_build=settings.SKIP_FRONTEND_BUILD, output=output)


class build_py(_build_py):
    def run(self):
        # package_data globs are evaluated lazily, after the archive exists
        embed_frontend()
        super().run()
