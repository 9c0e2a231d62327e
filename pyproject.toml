[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "topicbroker"
version = "0.1.0"
description = "A small publish/subscribe broker that relays UDP topic messages to TCP subscribers, with wildcard topic matching."
requires-python = ">=3.10"
dependencies = []
keywords = ["pubsub", "broker", "topics", "udp", "tcp", "wildcard"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
topicbroker-server = "topicbroker.server:main"
topicbroker-subscriber = "topicbroker.subscriber:main"

[tool.hatch.build.targets.wheel]
packages = ["topicbroker"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
