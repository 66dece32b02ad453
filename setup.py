from setuptools import setup, find_namespace_packages

setup(
    name="tdximage",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["tdximage", "tdximage.*"]),
    package_dir={"": "src"},
    package_data={"tdximage": ["DATA/cloud-init-data/*.template"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "click>=8.0",
        "tenacity>=8.0",
        "pyyaml>=6.0",
        "python-dotenv>=1.0",
        "jinja2>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "create-td-image=tdximage.CLI.main:main",
        ],
    },
)
