[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kkaddons"
version = "0.1.0"
description = "KubeSphere installer and cluster DNS add-on manifests, configuration models and deployment steps"
requires-python = ">=3.10"
keywords = ["kubernetes", "kubesphere", "coredns", "nodelocaldns", "manifests", "cluster"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["kkaddons"]

[tool.pytest.ini_options]
addopts = "-ra"
