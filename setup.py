"""
Installs AblationStan
"""

import re

from setuptools import find_packages, setup


# Get package information
def get_package_info():
    """
    Gets version information for the installation.
    """
    # Set up variables
    package_version = None

    # Open the file containing version info
    with open("ablationstan/__init__.py", "r", encoding="utf-8") as file:
        for line in file:
            # Check version
            if match_obj := re.match(r"__version__.+([0-9]+\.[0-9]+\.[0-9]+)", line):
                package_version = match_obj.group(1)

    # Checks on variables
    if package_version is None:
        raise IOError("Could not find information on version.")

    return package_version


# Run setup
setup(
    name="ablationstan",
    version=get_package_info(),
    packages=find_packages(include=["ablationstan", "ablationstan.*"]),
    python_requires=">=3.10",
    install_requires=[
        "arviz>=0.17,<1.0",
        "cmdstanpy>=1.2",
        "h5netcdf",
        "numpy",
        "pandas",
        "scipy",
        "tqdm",
        "typeguard>=4",
        "xarray",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": [
            "ablationstan-fit=ablationstan.pipelines.fit_linear_model:main",
        ],
    },
)
