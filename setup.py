from setuptools import setup, find_packages
import os

install_requires = ["lark", "pydantic>=2", "numpy"]

# Define optional dependencies for development
extras_require = {"dev": ["pytest"]}

setup(
    name="vopgen-compiler",
    version="1.0.0",
    packages=find_packages(where=".", exclude=["tests", "tests.*"]),
    install_requires=install_requires,
    extras_require=extras_require,
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "vopgen = vopgen.cli:main",
        ],
    },
    include_package_data=True,
    package_data={"vopgen.unit": ["*.lark"]},
    description="A specialization engine that expands vectorized VM operations into type- and addressing-mode-specific routines.",
    long_description=open("README.md").read() if os.path.exists("README.md") else "",
    long_description_content_type="text/markdown",
)
