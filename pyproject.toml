[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fatimacmd"
version = "1.0.0"
description = "Console tools for a Fatima package installation: process revisions, HA/PS status, Slack switches, tool updates, opm start/stop and deployment archive preparation"
requires-python = ">=3.10"
keywords = ["fatima", "deployment", "operations", "process-management", "cli"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "cryptography",
    "pyyaml",
    "tabulate",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
lcproc = "fatimacmd.lcproc:main"
lcha = "fatimacmd.hastatus:main_ha"
lcps = "fatimacmd.hastatus:main_ps"
lcslack = "fatimacmd.lcslack:main"
lcappclear = "fatimacmd.lcappclear:main"
roupdate = "fatimacmd.roupdate:main"
startro = "fatimacmd.opmctl:main_start"
stopro = "fatimacmd.opmctl:main_stop"

[tool.hatch.build.targets.wheel]
packages = ["fatimacmd"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
