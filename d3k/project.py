"""Project identity: unique name, d3k directory, framework and default dev command."""

import glob
import hashlib
import json
import os
import re
import logging

logger = logging.getLogger(__name__)

GENERIC_DIR_NAMES = ("www", "app", "src", "frontend", "backend", "client", "server", "web")
MAX_NAME_LENGTH = 50

_PYPROJECT_NAME_RE = re.compile(r"""^\s*name\s*=\s*["']([^"']+)["']""", re.MULTILINE)
_SETUP_PY_NAME_RE = re.compile(r"""name\s*=\s*["']([^"']+)["']""", re.MULTILINE)
_RAILS_MODULE_RE = re.compile(r"^\s*module\s+(\w+)", re.MULTILINE)
_HASH_SUFFIX_RE = re.compile(r"-[a-f0-9]{6}$")


def _read(path: str) -> str | None:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError):
        return None


def _package_json(cwd: str) -> dict:
    content = _read(os.path.join(cwd, "package.json"))
    if content is None:
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.debug("Unparseable package.json in %s: %s", cwd, e)
        return {}
    return data if isinstance(data, dict) else {}


def _declared_name(cwd: str) -> str | None:
    name = _package_json(cwd).get("name")
    if isinstance(name, str) and name:
        return name

    for filename, pattern in (
        ("pyproject.toml", _PYPROJECT_NAME_RE),
        ("setup.py", _SETUP_PY_NAME_RE),
        (os.path.join("config", "application.rb"), _RAILS_MODULE_RE),
    ):
        content = _read(os.path.join(cwd, filename))
        if content:
            m = pattern.search(content)
            if m:
                return m.group(1)
    return None


def sanitize_project_name(name: str) -> str:
    name = re.sub(r"[^a-zA-Z0-9\-_]", "-", name.lower())
    name = re.sub(r"-+", "-", name).strip("-")
    return name[:MAX_NAME_LENGTH]


def get_project_name(cwd: str | None = None) -> str:
    """Declared name (package.json, pyproject.toml, setup.py, Rails module) or the
    directory name, always suffixed with a hash of the path."""
    cwd = os.path.abspath(cwd or os.getcwd())
    name = _declared_name(cwd)
    if not name:
        dir_name = os.path.basename(cwd)
        if dir_name.lower() in GENERIC_DIR_NAMES:
            name = f"{os.path.basename(os.path.dirname(cwd))}-{dir_name}"
        else:
            name = dir_name
    path_hash = hashlib.sha256(cwd.encode("utf-8")).hexdigest()[:6]
    return sanitize_project_name(f"{name}-{path_hash}")


def get_project_display_name(cwd: str | None = None) -> str:
    return _HASH_SUFFIX_RE.sub("", get_project_name(cwd))


def get_project_dir(home_dir: str, cwd: str | None = None) -> str:
    """<home>/<project-name>: logs, archives and session.json live here."""
    return os.path.join(home_dir, get_project_name(cwd))


def detect_framework(cwd: str | None = None) -> str:
    """nextjs, rails, python, node or generic."""
    cwd = os.path.abspath(cwd or os.getcwd())
    pkg = _package_json(cwd)
    deps = {**(pkg.get("dependencies") or {}), **(pkg.get("devDependencies") or {})}

    if "next" in deps or glob.glob(os.path.join(cwd, "next.config.*")):
        return "nextjs"
    if os.path.exists(os.path.join(cwd, "config", "application.rb")):
        return "rails"
    for marker in ("pyproject.toml", "setup.py", "requirements.txt", "manage.py"):
        if os.path.exists(os.path.join(cwd, marker)):
            return "python"
    if pkg:
        return "node"
    return "generic"


def detect_package_manager(cwd: str) -> str:
    if os.path.exists(os.path.join(cwd, "pnpm-lock.yaml")):
        return "pnpm"
    if os.path.exists(os.path.join(cwd, "yarn.lock")):
        return "yarn"
    return "npm"


def default_dev_command(cwd: str | None = None) -> list[str] | None:
    """``<pm> run <script>`` for the first of dev/start/dev:server/develop; Rails uses bin/dev."""
    cwd = os.path.abspath(cwd or os.getcwd())
    scripts = _package_json(cwd).get("scripts") or {}
    for script in ("dev", "start", "dev:server", "develop"):
        if script in scripts:
            return [detect_package_manager(cwd), "run", script]
    if os.path.exists(os.path.join(cwd, "bin", "dev")):
        return [os.path.join(cwd, "bin", "dev")]
    return None
