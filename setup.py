from setuptools import find_packages, setup

setup(
    name="stack-pool",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests",
        "boto3>=1.26.0",
        "botocore",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-cov",
            "moto",
            "freezegun",
            "responses",
        ]
    },
)
