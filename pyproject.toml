[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "primeserver"
version = "0.7.0"
description = "ZeroMQ load-balancing proxy, graceful-shutdown handling and UDP service discovery"
requires-python = ">=3.10"
dependencies = [
    "pyzmq",
]
keywords = ["zeromq", "zmq", "load-balancing", "proxy", "service-discovery", "beacon", "sigterm"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["primeserver"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
