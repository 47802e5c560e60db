from setuptools import find_packages, setup

setup(
    name="brace-lang",
    version="0.1.0",
    description="A minimal Lisp-like language with an LLVM IR backend",
    python_requires=">=3.9",
    packages=find_packages(include=["brace", "brace.*"]),
    entry_points={
        "console_scripts": [
            "brace=brace.cli:main",
        ],
    },
    extras_require={
        "test": ["pytest"],
    },
)
