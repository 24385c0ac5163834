from setuptools import setup, find_packages


setup(
    name="tarlens",
    version="0.1",
    packages=find_packages(include=["tarlens", "tarlens.*"]),
    description="Streaming tar decoder with diff-friendly rendering and git diff/textconv drivers.",
    author="vercingetorx",
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "tarlens=tarlens.cli:main",
        ]
    },
)
