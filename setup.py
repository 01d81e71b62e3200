#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup configuration for the lead billing service.
"""

from setuptools import setup, find_packages

setup(
    name="lead-billing-service",
    version="1.0.0",
    author="isA Platform",
    author_email="dev@isa-platform.com",
    description="Prepaid lead credits, campaign pricing gate and Stripe reconciliation",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.0.0",
        "asyncpg>=0.29.0",  # PostgreSQL async client
        "stripe>=8.0.0",
        "python-dotenv>=1.0.0",
        "apscheduler>=3.10.0,<4",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.27.0",
        ],
    },
    include_package_data=True,
    package_data={
        "microservices.lead_billing_service": ["migrations/*.sql"],
    },
)
