#!/usr/bin/env python3
"""Set up a local avatar-chat checkout.

Usage:
    python install.py            # venv, package, config files
    python install.py --dev      # also installs the test extra
    python install.py --seed     # also loads demo_store.yaml into the database
"""

import platform
import shutil
import subprocess
import sys
from pathlib import Path

MIN_PYTHON = (3, 11)
PROJECT_DIR = Path(__file__).resolve().parent

# (example file, working copy)
TEMPLATES = [
    ("config.example.yaml", "config.yaml"),
    (".env.example", ".env"),
    ("demo_store.example.yaml", "demo_store.yaml"),
]


def _venv_bin(venv_dir: Path, name: str) -> Path:
    folder = "Scripts" if platform.system() == "Windows" else "bin"
    return venv_dir / folder / name


def _install_package(venv_dir: Path, dev: bool) -> None:
    if not venv_dir.is_dir():
        print("Creating virtual environment...")
        subprocess.check_call([sys.executable, "-m", "venv", str(venv_dir)])
    pip = str(_venv_bin(venv_dir, "pip"))
    subprocess.check_call([pip, "install", "--upgrade", "pip"])
    target = ".[dev]" if dev else "."
    print(f"Installing avatar-chat ({'editable, with tests' if dev else 'release'})...")
    args = [pip, "install", "-e", target] if dev else [pip, "install", target]
    subprocess.check_call(args, cwd=PROJECT_DIR)


def _copy_templates() -> None:
    for example, working in TEMPLATES:
        src, dst = PROJECT_DIR / example, PROJECT_DIR / working
        if dst.exists():
            print(f"{working} already exists, skipping.")
        elif src.exists():
            shutil.copy(src, dst)
            print(f"Created {working} from {example}")


def _seed_demo_store(venv_dir: Path) -> None:
    python = str(_venv_bin(venv_dir, "python"))
    print("Loading demo store...")
    subprocess.check_call([python, "-m", "avatar_chat", "seed", "demo_store.yaml"], cwd=PROJECT_DIR)


def main() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )

    venv_dir = PROJECT_DIR / ".venv"
    _install_package(venv_dir, dev="--dev" in sys.argv)
    (PROJECT_DIR / "data").mkdir(exist_ok=True)
    _copy_templates()
    if "--seed" in sys.argv:
        _seed_demo_store(venv_dir)

    activate = r".\.venv\Scripts\activate" if platform.system() == "Windows" else "source .venv/bin/activate"
    print()
    print("avatar-chat is installed. Next steps:")
    print("  1. Set DEMO_OPENAI_API_KEY in .env and pick backend/model in config.yaml")
    print(f"  2. {activate}")
    print("  3. python -m avatar_chat seed demo_store.yaml   (skip if you used --seed)")
    print("  4. python -m avatar_chat chat -a demo-avatar -u demo-owner")
    print()


if __name__ == "__main__":
    main()
