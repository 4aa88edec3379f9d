from setuptools import setup, find_packages

setup(
    name="mcmcore",
    version="0.1.0",
    author="Sanjan Muchandimath",
    description="Generic MCMC engine: transition kernels, adaptive tuning and multi-chain runs",
    packages=find_packages(include=["mcmcore", "mcmcore.*"]),
    install_requires=[
        "numpy>=1.20",
        "scipy>=1.7",
        "pyyaml>=5.4",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    python_requires=">=3.8",
)
