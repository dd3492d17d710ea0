from setuptools import setup, find_packages

setup(
    name="crt_reco",
    version="0.1.0",
    description="Match CRT track candidates to TPC wire-plane space points",
    packages=find_packages(include=["crt_reco", "crt_reco.*"]),
    python_requires=">=3.10",
    install_requires=[
        # Runtime dependencies
        "numpy",
        "pandas",
        "matplotlib",
        "networkx",
        "orjson",
        "uproot",
    ],
    extras_require={
        # Developer extras
        "dev": [
            "pytest",
            "black",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "crt-reco=crt_reco.main:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
