[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "catalog-builder"
version = "0.0.3"
description = "Build a custom JSON Schema catalog from local schemas and external sources"
requires-python = ">=3.11"
dependencies = []
keywords = ["json-schema", "catalog", "schema-catalog", "static-site"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: File Formats :: JSON :: JSON Schema",
    "Topic :: Software Development :: Build Tools",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
catalog-builder = "catalog_builder.cli:main"
lintel-catalog-builder = "catalog_builder.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["catalog_builder"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
