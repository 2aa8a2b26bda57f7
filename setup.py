#!/usr/bin/env python
import os

from setuptools import find_packages, setup


def get_version():
    version = {}
    path = os.path.join(os.path.dirname(__file__), "src", "imageslapper", "version.py")
    with open(path) as f:
        exec(f.read(), version)
    return version["__version__"]


setup(
    name="imageslapper",
    version=get_version(),
    description="Layer-based incremental compositing of RGBA rasters",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "attrs>=23.1.0",
        "numpy",
        "Pillow>=10.3.0",
    ],
    extras_require={
        "tests": ["pytest"],
    },
)
