import os

from setuptools import find_packages, setup

README = os.path.join(os.path.dirname(__file__), "README.md")


def readme() -> str:
    with open(README, encoding="utf-8") as f:
        return f.read()


setup(
    name="schema_to_source",
    version="0.1.0",
    description="Provider orchestration core for schema-driven source code generation",
    long_description=readme(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Code Generators",
        "Topic :: Database",
        "Intended Audience :: Developers",
    ],
    keywords="code generation database schema providers symbols imports",
    license="MIT",
    packages=find_packages(),
    python_requires=">=3.12",
    install_requires=[
        "jinja2>=3.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "black>=23.0.0",
            "ruff>=0.1.0",
        ],
    },
    include_package_data=True,
    package_data={
        "schema_to_source": ["templates/*.jinja2"],
    },
    zip_safe=False,
)
