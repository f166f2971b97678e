from setuptools import setup, find_packages

setup(
    name="confpatch",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        # Lua syntax trees
        "tree-sitter>=0.22",
        "tree-sitter-lua",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    author="Uday Kanth",
    description="Diff, patch and validate editor configuration files safely.",
)
