"""Setup script for quick installation."""

from setuptools import find_packages, setup

setup(
    name="prop-value-engine",
    version="0.1.0",
    description="Prediction and value-bet engine for player prop markets",
    author="Prop Value Engine Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "pandas>=2.1.0",
        "numpy>=1.25.0",
        "scipy>=1.11.0",
        "scikit-learn>=1.3.0",
        "sqlalchemy>=2.0.0",
        "click>=8.1.0",
        "rich>=13.5.0",
        "pydantic>=2.3.0",
        "pydantic-settings>=2.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "postgres": ["psycopg2-binary>=2.9.0"],
        "test": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": [
            "prop-engine=prop_engine.cli.predictions:cli",
        ],
    },
)
