from pathlib import Path
from setuptools import setup, find_packages
import re


HERE = Path(__file__).parent


def _read(p: Path) -> str:
    """Return the text of `p`, or an empty string when it is missing."""
    if not p.exists():
        return ""
    data = p.read_bytes()
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1", errors="replace")


def read_requirements(req_file: Path):
    return [
        line.strip() for line in _read(req_file).splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]


def get_version(pkg_init: Path):
    m = re.search(r"__version__\s*=\s*['\"]([^'\"]+)['\"]", _read(pkg_init))
    return m.group(1) if m else "0.0.0"


setup(
    name="apk-workbench",
    version=get_version(HERE / "src" / "apk_workbench" / "__init__.py"),
    description="Decompile, edit, recompile and sign Android APKs with apktool and uber-apk-signer",
    long_description=_read(HERE / "README.md"),
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=read_requirements(HERE / "requirements.txt"),
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "apk-workbench=apk_workbench.main:main",
        ]
    },
    python_requires=">=3.8",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
