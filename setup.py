from setuptools import setup, find_packages

setup(
    name="ideacapture",
    version="0.1.0",
    description="Incremental speech transcript reconciliation with crash-safe history storage",
    author="",
    python_requires=">=3.8",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "rich>=12.5.0",
        "pyyaml>=6.0.0",
        "pypubsub>=4.0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ideacapture=ideacapture.main:main",
        ],
    },
)
