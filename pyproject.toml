[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tinyvit"
version = "0.1.0"
description = "A small Vision Transformer for 28x28 grayscale image classification, trained and run with NumPy"
requires-python = ">=3.10"
dependencies = ["numpy"]
keywords = ["vision transformer", "vit", "mnist", "neural network", "numpy"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
tinyvit-train = "tinyvit.train:main"
tinyvit-infer = "tinyvit.infer:main"

[tool.hatch.build.targets.wheel]
packages = ["tinyvit"]

[tool.pytest.ini_options]
addopts = "-ra"
