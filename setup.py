"""
Setup script for the vault-gcp-token package.

This setup script is used for local development and testing.
"""

from setuptools import setup, find_packages

setup(
    name="vault-gcp-token",
    version="1.0.0",
    description="Short-lived GCP access tokens from the Vault GCP secrets engine",
    author="Storage Platform Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        "requests>=2.31.0",
        "pydantic>=2.0.0",
        "tenacity>=8.2.0",
        "python-json-logger>=3.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "responses>=0.23.0",
            "black",
            "isort",
            "pylint",
        ],
    },
    entry_points={
        "console_scripts": [
            "vault-gcp-token=vault_gcp_token.cli.auth_token:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
    ],
)
