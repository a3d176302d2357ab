"""
Setup configuration for the S3 Proxy Farm CDK Python application.

This setup.py file configures the Python package for the S3 Proxy Farm
construct library and the private static website CDK application,
including dependencies, metadata, and installation requirements.
"""

from setuptools import setup, find_packages

# Read long description from README if available
try:
    with open("README.md", "r", encoding="utf-8") as f:
        long_description = f.read()
except FileNotFoundError:
    long_description = "CDK Python construct serving private S3 static websites through a reverse proxy farm"

setup(
    name="s3-proxy-farm",
    version="1.0.0",
    description="AWS CDK construct for an auto scaled reverse proxy farm in front of a private S3 static website",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="S3 Proxy Farm Maintainers",
    author_email="engineering@example.com",
    url="https://github.com/your-org/s3-proxy-farm",

    # Package configuration
    packages=find_packages(exclude=["tests*"]),
    py_modules=["app"],
    python_requires=">=3.8",

    # Dependencies
    install_requires=[
        "aws-cdk-lib>=2.100.0,<3.0.0",
        "constructs>=10.0.0,<11.0.0",
        "jinja2>=3.1.0",
        "cdk-nag>=2.27.0",
    ],

    # Development dependencies
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "black>=23.7.0",
            "flake8>=6.0.0",
            "mypy>=1.5.0",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Internet :: Proxy Servers",
        "Topic :: System :: Systems Administration",
    ],
    keywords="aws cdk s3 static-website reverse-proxy nginx auto-scaling vpc-endpoint",

    entry_points={
        "console_scripts": [
            "deploy-s3-proxy-farm=app:main",
        ],
    },

    include_package_data=True,
    package_data={
        "s3_proxy_farm": ["templates/*.j2"],
    },
    zip_safe=False,
)
