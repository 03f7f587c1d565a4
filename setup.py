from setuptools import setup, find_packages

setup(
    name="gamma-surface",
    version="0.3.0",
    description="Implied volatility and gamma exposure surfaces from option contract listings",
    author="Leo",
    author_email="tabbakhianhatef@gmail.com",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24",
        "pandas>=2.0",
        "scipy>=1.11",
        "matplotlib>=3.7",
        "plotly>=5.15",
        "requests>=2.31",
    ],
    extras_require={
        "live": ["yfinance>=0.2.30"],
        "dev": ["pytest>=7.0", "black", "flake8"],
    },
    entry_points={
        "console_scripts": [
            "gamma-surface=main:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Topic :: Office/Business :: Financial",
        "Topic :: Scientific/Engineering",
    ],
)
