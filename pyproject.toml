[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rtrtransport"
version = "0.1.0"
description = "TCP and SSH transport channels for talking to RPKI-to-Router caches"
requires-python = ">=3.10"
keywords = ["rpki", "rtr", "bgp", "transport", "ssh", "tcp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "paramiko",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rtrtransport"]

[tool.pytest.ini_options]
addopts = "-ra"
