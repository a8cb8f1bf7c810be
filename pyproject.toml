[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lunavm"
version = "0.1.0"
description = "A small Lua-like language: lexer, parser, bytecode compiler and stack virtual machine"
requires-python = ">=3.10"
dependencies = []
keywords = ["lua", "interpreter", "bytecode", "virtual machine", "compiler"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
lunavm = "lunavm.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["lunavm"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
